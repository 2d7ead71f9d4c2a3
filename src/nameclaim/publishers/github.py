"""
GitHub repository creation

The only registry in nameclaim with a real claim primitive: creating the
repository makes the name unavailable on the account.
"""

import logging
from typing import Optional

from ..registries.base import RegistryKind
from ..registries.github import GitHubClient, GitHubError
from .base import ClaimStep, RepoAdapter, StepAction

logger = logging.getLogger(__name__)


class GitHubRepoAdapter(RepoAdapter):
    """Creates the claim repository under the authenticated account."""

    def __init__(
        self,
        client: GitHubClient,
        *,
        description: Optional[str] = None,
        private: bool = False,
    ):
        """
        Initialize adapter.

        Args:
            client: Authenticated GitHub client
            description: Repository description
            private: Create private repositories
        """
        self.client = client
        self.description = description
        self.private = private

    async def create_repo(self, name: str) -> ClaimStep:
        try:
            repo = await self.client.create_repo(
                name,
                description=self.description,
                private=self.private,
            )
        except GitHubError as e:
            logger.warning(f"Repository creation for {name!r} failed: {e}")
            return ClaimStep.failed(
                RegistryKind.GITHUB,
                StepAction.CREATE_REPO,
                str(e),
                failure=e.failure,
                retryable=e.retryable,
            )

        return ClaimStep.succeeded(
            RegistryKind.GITHUB,
            StepAction.CREATE_REPO,
            f"Created {repo.full_name}",
            url=repo.html_url,
            repo=repo,
        )
