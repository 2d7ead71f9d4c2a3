"""
GitHub REST client and repository-name probe

The probe checks whether the authenticated account already owns a repository
with the candidate name. The client also backs the claim side: creating the
repository and committing placeholder files into it.

API:
- GET  /user                               -> authenticated login
- GET  /repos/{owner}/{repo}               -> 200 exists, 404 free
- POST /user/repos                         -> 201 created, 422 name taken
- PUT  /repos/{owner}/{repo}/contents/{p}  -> 201 file committed

Required token scope: public_repo (for public) or repo (for private).
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import FailureKind
from .base import ProbeOutcome, RegistryKind, RegistryProbe
from .http import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubError(Exception):
    """Base exception for GitHub API errors."""
    failure = FailureKind.UNRESOLVED
    retryable = False


class AuthenticationError(GitHubError):
    """Token missing, invalid, or lacking scope."""
    failure = FailureKind.AUTH_FAILURE


class RepoExistsError(GitHubError):
    """Repository name already exists on the account."""
    failure = FailureKind.NAME_CONFLICT


class InvalidRepoNameError(GitHubError):
    """GitHub refused the repository name."""
    failure = FailureKind.INVALID_NAME


class RateLimitError(GitHubError):
    """Rate limit exceeded."""
    retryable = True


class GitHubUnavailableError(GitHubError):
    """Network failure, timeout or 5xx."""
    retryable = True


class CommitConflictError(GitHubError):
    """Another commit landed on the branch first."""
    retryable = True


@dataclass(frozen=True)
class CreatedRepo:
    """Repository returned by a successful creation."""
    name: str
    full_name: str
    html_url: str
    default_branch: str = "main"

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @classmethod
    def from_dict(cls, data: dict) -> "CreatedRepo":
        """Create from the GitHub API repository payload."""
        return cls(
            name=data.get("name", ""),
            full_name=data.get("full_name", ""),
            html_url=data.get("html_url", ""),
            default_branch=data.get("default_branch") or "main",
        )


def _error_for(response: httpx.Response) -> GitHubError:
    """Translate a non-success response into the matching exception."""
    status = response.status_code
    body = response.text

    if status == 401:
        return AuthenticationError("Authentication required - check your token")
    if status == 403:
        if response.headers.get("x-ratelimit-remaining") == "0":
            return RateLimitError("Rate limited - try again later")
        return AuthenticationError("Token lacks permission for this request (HTTP 403)")
    if status == 422:
        if "already exists" in body:
            return RepoExistsError("Repository already exists")
        return InvalidRepoNameError(f"Invalid repository name: {body[:200]}")
    if status == 429:
        return RateLimitError("Rate limited - try again later")
    if status >= 500:
        return GitHubUnavailableError(f"GitHub unavailable: HTTP {status}")
    return GitHubError(f"API error: HTTP {status}: {body[:200]}")


class GitHubClient:
    """
    Minimal async GitHub REST client.

    The token is read by the caller (normally from GITHUB_TOKEN) and never
    persisted.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        api_url: str = GITHUB_API_URL,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: Personal access token
            api_url: API base URL
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            client: Pre-built HTTP client (mainly for tests)
        """
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._client = client
        self._owns_client = client is None
        self._login: Optional[str] = None

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if not self._token:
            raise AuthenticationError(
                "No GitHub token provided. Set GITHUB_TOKEN or pass token to constructor."
            )
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": self._user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = self._get_client()
        try:
            return await client.request(
                method, f"{self._api_url}{path}", headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as e:
            raise GitHubUnavailableError(f"Timed out: {e}") from e
        except httpx.HTTPError as e:
            raise GitHubUnavailableError(f"Network error: {e}") from e

    async def get_username(self) -> str:
        """Get the authenticated user's login (cached per client)."""
        if self._login is None:
            response = await self._request("GET", "/user")
            if response.status_code != 200:
                raise _error_for(response)
            self._login = response.json()["login"]
        return self._login

    async def repo_exists(self, owner: str, name: str) -> bool:
        """Whether {owner}/{name} exists and is visible to the token."""
        response = await self._request("GET", f"/repos/{owner}/{name}")
        if response.status_code == 404:
            return False
        if 200 <= response.status_code < 300:
            return True
        raise _error_for(response)

    async def create_repo(
        self,
        name: str,
        *,
        description: Optional[str] = None,
        private: bool = False,
        auto_init: bool = True,
    ) -> CreatedRepo:
        """
        Create a repository under the authenticated account.

        Raises:
            RepoExistsError: Name already used on the account
            AuthenticationError: Token missing or rejected
            GitHubUnavailableError: Network trouble or 5xx
        """
        payload = {
            "name": name,
            "description": description,
            "private": private,
            "auto_init": auto_init,  # README commit so contents can be added
        }
        response = await self._request("POST", "/user/repos", json=payload)
        if response.status_code != 201:
            raise _error_for(response)

        repo = CreatedRepo.from_dict(response.json())
        logger.info(f"Created GitHub repository {repo.full_name}")
        return repo

    async def put_file(
        self,
        repo: CreatedRepo,
        path: str,
        content: str,
        message: str,
    ) -> str:
        """
        Commit a new file to the repository's default branch.

        Returns:
            html_url of the committed file
        """
        payload = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": repo.default_branch,
        }
        response = await self._request(
            "PUT", f"/repos/{repo.full_name}/contents/{path}", json=payload
        )
        if response.status_code == 422:
            raise GitHubError(f"{path} already exists in {repo.full_name}")
        if response.status_code == 409:
            raise CommitConflictError(f"Branch moved while committing {path}")
        if response.status_code not in (200, 201):
            raise _error_for(response)

        data = response.json()
        return data.get("content", {}).get("html_url") or f"{repo.html_url}/blob/{repo.default_branch}/{path}"

    async def close(self):
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class GitHubProbe(RegistryProbe):
    """
    Checks whether the authenticated account already has a repository
    with the candidate name.
    """

    def __init__(self, client: GitHubClient):
        self._github = client

    @property
    def kind(self) -> RegistryKind:
        return RegistryKind.GITHUB

    async def check(self, name: str) -> ProbeOutcome:
        if not self._github.has_token:
            return ProbeOutcome.error(
                self.kind,
                "Set GITHUB_TOKEN to check GitHub repositories",
                failure=FailureKind.AUTH_FAILURE,
            )

        try:
            owner = await self._github.get_username()
            exists = await self._github.repo_exists(owner, name)
        except GitHubError as e:
            return ProbeOutcome.error(self.kind, str(e), failure=e.failure, retryable=e.retryable)

        return ProbeOutcome.taken(self.kind) if exists else ProbeOutcome.available(self.kind)

    async def close(self):
        await self._github.close()
