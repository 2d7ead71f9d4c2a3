"""
Base protocol for claim adapters

A claim is a sequence of ClaimSteps. The GitHub repository adapter creates
the step everything else depends on; publish adapters then stake the name
on one registry each.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import FailureKind
from ..registries.base import RegistryKind
from ..registries.github import CreatedRepo


class StepAction(str, Enum):
    """What a claim step did."""
    CREATE_REPO = "create_repo"
    PUBLISH = "publish"


class StepStatus(str, Enum):
    """Result tag of a claim step."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ClaimStep:
    """One unit of claim work and how it went."""
    registry: RegistryKind
    action: StepAction
    status: StepStatus
    detail: str = ""
    failure: Optional[FailureKind] = None
    retryable: bool = False
    url: Optional[str] = None
    repo: Optional[CreatedRepo] = None  # set on a successful CREATE_REPO step

    @classmethod
    def succeeded(
        cls,
        registry: RegistryKind,
        action: StepAction,
        detail: str = "",
        *,
        url: Optional[str] = None,
        repo: Optional[CreatedRepo] = None,
    ) -> "ClaimStep":
        return cls(
            registry=registry,
            action=action,
            status=StepStatus.SUCCEEDED,
            detail=detail,
            url=url,
            repo=repo,
        )

    @classmethod
    def failed(
        cls,
        registry: RegistryKind,
        action: StepAction,
        reason: str,
        *,
        failure: FailureKind = FailureKind.UNRESOLVED,
        retryable: bool = False,
    ) -> "ClaimStep":
        return cls(
            registry=registry,
            action=action,
            status=StepStatus.FAILED,
            detail=reason,
            failure=failure,
            retryable=retryable,
        )

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

    @property
    def reason(self) -> Optional[str]:
        """Failure reason, None for successful steps."""
        return None if self.ok else self.detail

    def to_dict(self) -> dict:
        return {
            "registry": self.registry.value,
            "action": self.action.value,
            "status": self.status.value,
            "detail": self.detail,
            "failure": self.failure.value if self.failure else None,
            "retryable": self.retryable,
            "url": self.url,
        }


class RepoAdapter(ABC):
    """Creates the repository a claim is anchored on."""

    @abstractmethod
    async def create_repo(self, name: str) -> ClaimStep:
        """
        Create the claim repository.

        Returns:
            CREATE_REPO ClaimStep; on success its `repo` field is set.
            Failures are returned, not raised.
        """
        pass


class PublishAdapter(ABC):
    """
    Stakes a name on one registry once the repository exists.

    Adapters for registries without a real claim primitive may be stubs.
    """

    @property
    @abstractmethod
    def kind(self) -> RegistryKind:
        """Registry this adapter publishes to."""
        pass

    @abstractmethod
    async def publish(self, name: str, repo: CreatedRepo) -> ClaimStep:
        """
        Claim the name on this registry.

        Args:
            name: Normalized candidate name
            repo: Repository created by the preceding step

        Returns:
            PUBLISH ClaimStep. Failures are returned, not raised.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r})"
