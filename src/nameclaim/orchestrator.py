"""
Claim Orchestrator

Sequences a claim across registries:
1. Validating   - every requested registry must be AVAILABLE in the report
2. CreatingRepo - create the GitHub repository (terminal on failure)
3. Publishing   - one sub-step per requested registry, independent of each other
4. Done

States advance only along the transition table below, so every partial
failure lands in a well-defined place.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional

from .config import Config, config
from .dispatcher import AvailabilityReport
from .errors import FailureKind, InvalidPreconditionError
from .publishers import (
    ClaimStep, GitHubRepoAdapter, PublishAdapter, RepoAdapter, StepAction,
    default_publishers,
)
from .registries import (
    CreatedRepo, GitHubClient, RegistryKind, normalize_name, parse_kinds, sort_kinds,
)

logger = logging.getLogger(__name__)

# Order publish sub-steps run and are reported in
PUBLISH_ORDER = (
    RegistryKind.NPM,
    RegistryKind.CRATES,
    RegistryKind.PYPI,
    RegistryKind.DEV_DOMAIN,
)


class ClaimState(str, Enum):
    """Orchestrator state."""
    VALIDATING = "validating"
    CREATING_REPO = "creating_repo"
    PUBLISHING = "publishing"
    DONE = "done"


TRANSITIONS: dict[ClaimState, frozenset[ClaimState]] = {
    ClaimState.VALIDATING: frozenset({ClaimState.CREATING_REPO, ClaimState.DONE}),
    ClaimState.CREATING_REPO: frozenset({ClaimState.PUBLISHING, ClaimState.DONE}),
    ClaimState.PUBLISHING: frozenset({ClaimState.DONE}),
    ClaimState.DONE: frozenset(),
}


class ClaimOverall(str, Enum):
    """Overall claim result."""
    SUCCEEDED = "succeeded"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass(frozen=True)
class ClaimRequest:
    """A name and the registries the user chose to claim it on."""
    name: str
    kinds: frozenset[RegistryKind]

    def __post_init__(self):
        object.__setattr__(self, "name", normalize_name(self.name))
        object.__setattr__(self, "kinds", parse_kinds(self.kinds))

    @property
    def publish_kinds(self) -> list[RegistryKind]:
        """Requested registries that get a publish sub-step, in run order."""
        return [k for k in PUBLISH_ORDER if k in self.kinds]


def derive_overall(steps: Iterable[ClaimStep]) -> ClaimOverall:
    """
    Overall status from a sequence of steps.

    FAILED if the repository was not created; SUCCEEDED if every step
    succeeded; PARTIAL_SUCCESS otherwise.
    """
    steps = list(steps)
    creation = next((s for s in steps if s.action == StepAction.CREATE_REPO), None)
    if creation is None or not creation.ok:
        return ClaimOverall.FAILED
    if all(s.ok for s in steps):
        return ClaimOverall.SUCCEEDED
    return ClaimOverall.PARTIAL_SUCCESS


@dataclass(frozen=True)
class ClaimReport:
    """Ordered claim steps and the status derived from them."""
    name: str
    steps: tuple[ClaimStep, ...]
    started_at: str
    finished_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def overall(self) -> ClaimOverall:
        return derive_overall(self.steps)

    @property
    def creation_step(self) -> Optional[ClaimStep]:
        return next((s for s in self.steps if s.action == StepAction.CREATE_REPO), None)

    @property
    def publish_steps(self) -> list[ClaimStep]:
        return [s for s in self.steps if s.action == StepAction.PUBLISH]

    @property
    def aborted(self) -> bool:
        """Claim stopped before any registry was attempted."""
        creation = self.creation_step
        return creation is None or not creation.ok

    @property
    def claimed_kinds(self) -> list[RegistryKind]:
        return [s.registry for s in self.steps if s.ok]

    @property
    def retryable_steps(self) -> list[ClaimStep]:
        return [s for s in self.steps if not s.ok and s.retryable]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "overall": self.overall.value,
            "aborted": self.aborted,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "steps": [s.to_dict() for s in self.steps],
        }


def check_preconditions(request: ClaimRequest, report: AvailabilityReport) -> None:
    """
    Ensure the request only covers registries the report confirmed free.

    Raises:
        InvalidPreconditionError: On any mismatch
    """
    if not request.kinds:
        raise InvalidPreconditionError("Nothing to claim: no registries selected")
    if request.name != report.name:
        raise InvalidPreconditionError(
            f"Report is for {report.name!r}, not {request.name!r}"
        )

    not_available = []
    for kind in sort_kinds(request.kinds):
        outcome = report.outcome(kind)
        if outcome is None:
            not_available.append(f"{kind.label} (not checked)")
        elif not outcome.is_available:
            not_available.append(f"{kind.label} ({outcome.status.value})")
    if not_available:
        raise InvalidPreconditionError(
            f"{request.name!r} is not confirmed available on: {', '.join(not_available)}"
        )


class ClaimOrchestrator:
    """
    Runs a claim as an explicit state machine.

    Steps are recorded in the order they run; publish sub-steps always
    appear in PUBLISH_ORDER regardless of how they were scheduled.
    """

    def __init__(
        self,
        repo_adapter: RepoAdapter,
        publishers: Optional[Mapping[RegistryKind, PublishAdapter]] = None,
        *,
        concurrent_publish: Optional[bool] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            repo_adapter: Creates the claim repository
            publishers: Publish adapter per registry kind
            concurrent_publish: Run publish sub-steps together (defaults to config)
        """
        self.repo_adapter = repo_adapter
        self.publishers = dict(publishers or {})
        self.concurrent_publish = (
            config.claim.concurrent_publish if concurrent_publish is None else concurrent_publish
        )
        self.state = ClaimState.VALIDATING
        self._on_state: Optional[Callable[[ClaimState], None]] = None

    @classmethod
    def from_config(
        cls,
        cfg: Optional[Config] = None,
        *,
        github: Optional[GitHubClient] = None,
    ) -> "ClaimOrchestrator":
        """Orchestrator wired to GitHub with the default publishers."""
        cfg = cfg or config
        if github is None:
            github = GitHubClient(
                cfg.github.token,
                api_url=cfg.github.api_url,
                timeout=cfg.github.timeout_seconds,
                user_agent=cfg.probes.user_agent,
            )
        return cls(
            GitHubRepoAdapter(
                github,
                description=cfg.github.repo_description,
                private=cfg.github.private_repos,
            ),
            default_publishers(github),
            concurrent_publish=cfg.claim.concurrent_publish,
        )

    def _advance(self, new_state: ClaimState):
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal claim transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Claim state {self.state.value} -> {new_state.value}")
        self.state = new_state
        if self._on_state is not None:
            self._on_state(new_state)

    async def claim(
        self,
        request: ClaimRequest,
        report: AvailabilityReport,
        *,
        on_state: Optional[Callable[[ClaimState], None]] = None,
        on_step: Optional[Callable[[ClaimStep], None]] = None,
    ) -> ClaimReport:
        """
        Claim a name on the requested registries.

        Args:
            request: Name and registries to claim
            report: Most recent availability report for the name
            on_state: Called on every state transition
            on_step: Called as each step finishes

        Returns:
            ClaimReport with one step per attempted action

        Raises:
            InvalidPreconditionError: Request covers a registry not confirmed
                available; nothing is attempted
        """
        self.state = ClaimState.VALIDATING
        self._on_state = on_state
        started_at = datetime.now(timezone.utc).isoformat()
        steps: list[ClaimStep] = []

        def record(step: ClaimStep):
            steps.append(step)
            if on_step is not None:
                on_step(step)

        try:
            check_preconditions(request, report)
        except InvalidPreconditionError:
            self._advance(ClaimState.DONE)
            raise

        self._advance(ClaimState.CREATING_REPO)
        creation = await self._create_repo(request.name)
        record(creation)
        if not creation.ok:
            logger.info(f"Claim for {request.name!r} stopped: {creation.detail}")
            self._advance(ClaimState.DONE)
            return ClaimReport(name=request.name, steps=tuple(steps), started_at=started_at)

        self._advance(ClaimState.PUBLISHING)
        kinds = request.publish_kinds
        if self.concurrent_publish:
            results = await asyncio.gather(
                *[self._publish(kind, request.name, creation.repo) for kind in kinds]
            )
            for step in results:
                record(step)
        else:
            for kind in kinds:
                record(await self._publish(kind, request.name, creation.repo))

        self._advance(ClaimState.DONE)
        claim_report = ClaimReport(name=request.name, steps=tuple(steps), started_at=started_at)
        logger.info(f"Claim for {request.name!r} finished: {claim_report.overall.value}")
        return claim_report

    async def _create_repo(self, name: str) -> ClaimStep:
        try:
            step = await self.repo_adapter.create_repo(name)
        except Exception as e:
            logger.warning(f"Repository adapter raised {type(e).__name__}: {e}")
            return ClaimStep.failed(
                RegistryKind.GITHUB, StepAction.CREATE_REPO, f"Repository creation failed: {e}"
            )
        if step.ok and step.repo is None:
            logger.warning("Repository adapter reported success without a repository")
            return ClaimStep.failed(
                RegistryKind.GITHUB, StepAction.CREATE_REPO,
                "Repository adapter reported success without a repository",
            )
        return step

    async def _publish(self, kind: RegistryKind, name: str, repo: CreatedRepo) -> ClaimStep:
        adapter = self.publishers.get(kind)
        if adapter is None:
            return ClaimStep.failed(
                kind, StepAction.PUBLISH, f"No publisher configured for {kind.label}",
                failure=FailureKind.UNRESOLVED,
            )
        try:
            step = await adapter.publish(name, repo)
        except Exception as e:
            logger.warning(f"{kind.label} publisher raised {type(e).__name__}: {e}")
            return ClaimStep.failed(kind, StepAction.PUBLISH, f"Publish failed: {e}")

        if step.ok:
            logger.debug(f"{kind.label} claimed for {name!r}")
        else:
            logger.warning(f"{kind.label} claim for {name!r} failed: {step.detail}")
        return step
