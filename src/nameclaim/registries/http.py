"""
Shared HTTP plumbing for package registry probes

npm, crates.io and PyPI all answer the same question the same way: GET the
package's canonical URL, 404 means nobody owns the name.
"""

import logging
from abc import abstractmethod
from typing import Optional

import httpx

from ..errors import FailureKind
from .base import ProbeOutcome, RegistryKind, RegistryProbe

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "nameclaim/0.1.0 (package-name-checker)"
DEFAULT_TIMEOUT = 5.0


def classify_status(kind: RegistryKind, status_code: int) -> ProbeOutcome:
    """
    Map an HTTP status from an existence endpoint to a ProbeOutcome.

    Args:
        kind: Registry the response came from
        status_code: HTTP status code

    Returns:
        AVAILABLE for 404, TAKEN for 2xx, ERROR for everything else
    """
    if status_code == 404:
        return ProbeOutcome.available(kind)
    if 200 <= status_code < 300:
        return ProbeOutcome.taken(kind)
    if status_code == 429:
        return ProbeOutcome.error(kind, "Rate limited - try again later", retryable=True)
    if status_code >= 500:
        return ProbeOutcome.error(kind, f"Server error: HTTP {status_code}", retryable=True)
    if status_code in (401, 403):
        return ProbeOutcome.error(
            kind,
            f"Authentication failed: HTTP {status_code}",
            failure=FailureKind.AUTH_FAILURE,
        )
    if status_code in (400, 422):
        return ProbeOutcome.error(
            kind,
            f"Name rejected by registry: HTTP {status_code}",
            failure=FailureKind.INVALID_NAME,
        )
    return ProbeOutcome.error(kind, f"Unexpected status: HTTP {status_code}")


class HttpRegistryProbe(RegistryProbe):
    """
    Probe backed by a single unauthenticated GET.

    Subclasses only supply the registry kind and the URL for a name.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Initialize probe.

        Args:
            client: Shared HTTP client (a private one is created lazily if None)
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
        """
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._user_agent = user_agent

    @abstractmethod
    def url_for(self, name: str) -> str:
        """Existence endpoint for a name."""
        pass

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
                follow_redirects=True,
            )
        return self._client

    async def check(self, name: str) -> ProbeOutcome:
        client = self._get_client()
        url = self.url_for(name)

        try:
            response = await client.get(url, headers={"User-Agent": self._user_agent})
        except httpx.TimeoutException as e:
            return ProbeOutcome.error(self.kind, f"Timed out: {e}", retryable=True)
        except httpx.InvalidURL as e:
            return ProbeOutcome.error(
                self.kind, f"Invalid name: {e}", failure=FailureKind.INVALID_NAME
            )
        except httpx.HTTPError as e:
            return ProbeOutcome.error(self.kind, f"Connection error: {e}", retryable=True)

        outcome = classify_status(self.kind, response.status_code)
        logger.debug(f"{self.kind.label} {name}: HTTP {response.status_code} -> {outcome.status.value}")
        return outcome

    async def close(self):
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
