"""
Query Dispatcher

Fans one candidate name out to every requested registry probe at once and
gathers the answers into a single AvailabilityReport:
1. Validate the name and registry selection
2. Start one task per registry, each under its own timeout
3. Wait for every task (no early exit on the first TAKEN)
4. Freeze the outcomes into a report

Cancelling the dispatch cancels every in-flight probe; a report is either
complete or never produced.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional

import httpx

from .config import Config, config
from .errors import FailureKind, InvalidQueryError
from .registries import (
    CratesProbe, DevDomainProbe, GitHubClient, GitHubProbe, NpmProbe, PyPIProbe,
    ProbeOutcome, RegistryKind, RegistryProbe, normalize_name, parse_kinds, sort_kinds,
)

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[ProbeOutcome], None]


@dataclass(frozen=True)
class NameQuery:
    """A candidate name and the registries to check it against."""
    name: str
    kinds: frozenset[RegistryKind]

    def __post_init__(self):
        object.__setattr__(self, "name", normalize_name(self.name))
        kinds = parse_kinds(self.kinds)
        if not kinds:
            raise InvalidQueryError("Select at least one registry to check")
        object.__setattr__(self, "kinds", kinds)

    @classmethod
    def create(cls, name: str, kinds: Optional[Iterable] = None) -> "NameQuery":
        """
        Build a query from loose input.

        Args:
            name: Candidate name
            kinds: RegistryKind values or their string names (defaults to
                the configured search set)
        """
        if kinds is None:
            return cls(name=name, kinds=config.search_kinds())
        return cls(name=name, kinds=parse_kinds(kinds))

    @property
    def ordered_kinds(self) -> list[RegistryKind]:
        return sort_kinds(self.kinds)


@dataclass(frozen=True)
class AvailabilityReport:
    """
    One outcome per requested registry for a single name.

    Immutable; built only once every probe has resolved.
    """
    query: NameQuery
    outcomes: Mapping[RegistryKind, ProbeOutcome]
    completed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __post_init__(self):
        outcomes = dict(self.outcomes)
        if set(outcomes) != set(self.query.kinds):
            missing = sorted(k.value for k in set(self.query.kinds) - set(outcomes))
            extra = sorted(k.value for k in set(outcomes) - set(self.query.kinds))
            raise ValueError(f"Report does not match query (missing={missing}, extra={extra})")
        for kind, outcome in outcomes.items():
            if outcome.kind != kind:
                raise ValueError(f"Outcome for {outcome.kind.value} filed under {kind.value}")
        ordered = {kind: outcomes[kind] for kind in sort_kinds(outcomes)}
        object.__setattr__(self, "outcomes", MappingProxyType(ordered))

    @property
    def name(self) -> str:
        return self.query.name

    def outcome(self, kind: RegistryKind) -> Optional[ProbeOutcome]:
        return self.outcomes.get(kind)

    def is_available(self, kind: RegistryKind) -> bool:
        outcome = self.outcomes.get(kind)
        return outcome is not None and outcome.is_available

    @property
    def available_kinds(self) -> list[RegistryKind]:
        return [k for k, o in self.outcomes.items() if o.is_available]

    @property
    def taken_kinds(self) -> list[RegistryKind]:
        return [k for k, o in self.outcomes.items() if o.is_taken]

    @property
    def error_kinds(self) -> list[RegistryKind]:
        return [k for k, o in self.outcomes.items() if o.is_error]

    @property
    def retryable_kinds(self) -> list[RegistryKind]:
        """Registries worth re-checking."""
        return [k for k, o in self.outcomes.items() if o.is_error and o.retryable]

    @property
    def has_errors(self) -> bool:
        return bool(self.error_kinds)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "completed_at": self.completed_at,
            "results": [o.to_dict() for o in self.outcomes.values()],
        }


def default_probes(
    cfg: Optional[Config] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    github: Optional[GitHubClient] = None,
) -> dict[RegistryKind, RegistryProbe]:
    """
    Build the standard probe for every registry.

    Args:
        cfg: Configuration (defaults to the global config)
        client: Shared HTTP client for the package registry probes
        github: GitHub client (built from config if None)

    Returns:
        Mapping of RegistryKind -> probe
    """
    cfg = cfg or config
    timeout = cfg.probes.timeout_seconds
    user_agent = cfg.probes.user_agent
    if github is None:
        github = GitHubClient(
            cfg.github.token,
            api_url=cfg.github.api_url,
            timeout=cfg.github.timeout_seconds,
            user_agent=user_agent,
        )

    return {
        RegistryKind.NPM: NpmProbe(client, timeout=timeout, user_agent=user_agent),
        RegistryKind.CRATES: CratesProbe(client, timeout=timeout, user_agent=user_agent),
        RegistryKind.PYPI: PyPIProbe(client, timeout=timeout, user_agent=user_agent),
        RegistryKind.DEV_DOMAIN: DevDomainProbe(timeout=timeout),
        RegistryKind.GITHUB: GitHubProbe(github),
    }


class QueryDispatcher:
    """
    Runs registry probes concurrently and aggregates their outcomes.

    No retries happen here; retryable errors are surfaced in the report
    for the caller to re-trigger.
    """

    def __init__(
        self,
        probes: Optional[Mapping[RegistryKind, RegistryProbe]] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            probes: Probe per registry kind (defaults to default_probes())
            timeout: Per-probe timeout in seconds (defaults to config)
        """
        self.probes = dict(probes) if probes is not None else default_probes()
        self.timeout = timeout if timeout is not None else config.probes.timeout_seconds

    async def dispatch(
        self,
        query: NameQuery,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> AvailabilityReport:
        """
        Check one name against every registry in the query.

        Args:
            query: Name and registries to check
            on_outcome: Called as each probe resolves (progress only)

        Returns:
            AvailabilityReport with exactly one outcome per requested registry

        Raises:
            InvalidQueryError: If a requested registry has no probe
        """
        missing = [k.value for k in query.ordered_kinds if k not in self.probes]
        if missing:
            raise InvalidQueryError(f"No probe configured for: {', '.join(missing)}")

        kinds = query.ordered_kinds
        logger.debug(f"Dispatching {query.name!r} to {[k.value for k in kinds]}")

        async def run(kind: RegistryKind) -> ProbeOutcome:
            outcome = await self._run_probe(kind, query.name)
            if on_outcome is not None:
                on_outcome(outcome)
            return outcome

        # Each task converts its own failures to data, so gather never sees
        # an exception other than cancellation.
        outcomes = await asyncio.gather(*[run(kind) for kind in kinds])

        report = AvailabilityReport(query=query, outcomes=dict(zip(kinds, outcomes)))
        logger.info(
            f"{query.name}: {len(report.available_kinds)} available, "
            f"{len(report.taken_kinds)} taken, {len(report.error_kinds)} unknown"
        )
        return report

    async def _run_probe(self, kind: RegistryKind, name: str) -> ProbeOutcome:
        probe = self.probes[kind]
        try:
            outcome = await asyncio.wait_for(probe.check(name), timeout=self.timeout)
        except asyncio.TimeoutError:
            return ProbeOutcome.error(
                kind, f"No answer within {self.timeout:g}s", retryable=True
            )
        except Exception as e:
            logger.warning(f"{kind.label} probe raised {type(e).__name__}: {e}")
            return ProbeOutcome.error(kind, f"Probe failed: {e}", failure=FailureKind.UNRESOLVED)

        if outcome.kind != kind:
            logger.warning(f"{kind.label} probe answered for {outcome.kind.value}")
            return ProbeOutcome.error(kind, "Probe answered for the wrong registry")
        return outcome

    async def close(self):
        """Close every probe's connections."""
        for probe in self.probes.values():
            await probe.close()

    async def __aenter__(self) -> "QueryDispatcher":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()


# Convenience function for one-off checks
async def quick_check(
    name: str,
    kinds: Optional[Iterable] = None,
) -> AvailabilityReport:
    """
    Check a name with default probes and configuration.

    Args:
        name: Candidate name
        kinds: Registries to check (defaults to the configured search set)

    Returns:
        AvailabilityReport
    """
    query = NameQuery.create(name, kinds)
    async with QueryDispatcher() as dispatcher:
        return await dispatcher.dispatch(query)
