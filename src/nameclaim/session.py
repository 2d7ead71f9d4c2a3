"""
Query and claim sessions

A session owns the task behind one user-triggered action and exposes its
progress and final result to the presentation layer. Discarding a session
cancels everything it started; a cancelled query never exposes a partial
report.

SessionManager keeps actions for the same name from overlapping.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Generic, Iterable, Optional, TypeVar

from .dispatcher import AvailabilityReport, NameQuery, QueryDispatcher
from .errors import InvalidPreconditionError, SessionBusyError
from .orchestrator import ClaimOrchestrator, ClaimReport, ClaimRequest, ClaimState
from .publishers import ClaimStep
from .registries import ProbeOutcome, RegistryKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, Enum):
    """Lifecycle of a session."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Session(Generic[T]):
    """Base class: one asyncio task, started once, cancellable."""

    def __init__(self, name: str):
        self.name = name
        self.state = SessionState.PENDING
        self.error: Optional[BaseException] = None
        self._result: Optional[T] = None
        self._task: Optional[asyncio.Task] = None
        self._done_callbacks: list[Callable[["Session[T]"], None]] = []

    async def _execute(self) -> T:
        raise NotImplementedError

    async def _run(self) -> T:
        try:
            result = await self._execute()
        except asyncio.CancelledError:
            self.state = SessionState.CANCELLED
            raise
        except Exception as e:
            self.state = SessionState.FAILED
            self.error = e
            raise
        self._result = result
        self.state = SessionState.COMPLETE
        return result

    def start(self) -> "Session[T]":
        """Start the session's task on the running loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            self._task.add_done_callback(self._notify_done)
            self.state = SessionState.RUNNING
        return self

    def add_done_callback(self, fn: Callable[["Session[T]"], None]):
        """Call fn with this session once its task has finished, however it ended."""
        self._done_callbacks.append(fn)

    def _notify_done(self, task: asyncio.Task):
        for fn in self._done_callbacks:
            fn(self)

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def done(self) -> bool:
        return self.state in (SessionState.COMPLETE, SessionState.CANCELLED, SessionState.FAILED)

    @property
    def result(self) -> Optional[T]:
        """Final result, or None until the session completes."""
        return self._result if self.state == SessionState.COMPLETE else None

    async def wait(self) -> T:
        """
        Wait for the result, starting the session if needed.

        Raises:
            asyncio.CancelledError: The session was cancelled
            NameClaimError: Usage error raised by the action
        """
        self.start()
        return await self._task

    def cancel(self):
        """Cancel in-flight work. No-op once the session is done."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self.state = SessionState.CANCELLED
        elif self._task is None:
            self.state = SessionState.CANCELLED

    async def aclose(self):
        """Cancel and wait until the task has actually stopped."""
        self.cancel()
        if self._task is not None:
            await asyncio.wait([self._task])
            if not self._task.cancelled():
                # Retrieve the exception so asyncio doesn't log it as lost
                self._task.exception()

    async def __aenter__(self):
        return self.start()

    async def __aexit__(self, *exc_info):
        await self.aclose()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, state={self.state.value!r})"


class QuerySession(Session[AvailabilityReport]):
    """Availability check for one name."""

    def __init__(
        self,
        dispatcher: QueryDispatcher,
        query: NameQuery,
        on_complete: Optional[Callable[[AvailabilityReport], None]] = None,
    ):
        super().__init__(query.name)
        self.dispatcher = dispatcher
        self.query = query
        self._on_complete = on_complete
        self._resolved: set[RegistryKind] = set()

    @property
    def progress(self) -> tuple[int, int]:
        """(resolved probes, total probes). Individual outcomes stay hidden until done."""
        return len(self._resolved), len(self.query.kinds)

    @property
    def report(self) -> Optional[AvailabilityReport]:
        return self.result

    def _record(self, outcome: ProbeOutcome):
        self._resolved.add(outcome.kind)

    async def _execute(self) -> AvailabilityReport:
        report = await self.dispatcher.dispatch(self.query, on_outcome=self._record)
        if self._on_complete is not None:
            self._on_complete(report)
        return report


class ClaimSession(Session[ClaimReport]):
    """Claim run for one name."""

    def __init__(
        self,
        orchestrator: ClaimOrchestrator,
        request: ClaimRequest,
        report: AvailabilityReport,
    ):
        super().__init__(request.name)
        self.orchestrator = orchestrator
        self.request = request
        self.availability = report
        self.claim_state = ClaimState.VALIDATING
        self.steps: list[ClaimStep] = []

    @property
    def progress(self) -> tuple[int, int]:
        """(finished steps, expected steps if everything runs)."""
        return len(self.steps), 1 + len(self.request.publish_kinds)

    @property
    def report(self) -> Optional[ClaimReport]:
        return self.result

    def _on_state(self, state: ClaimState):
        self.claim_state = state

    async def _execute(self) -> ClaimReport:
        return await self.orchestrator.claim(
            self.request,
            self.availability,
            on_state=self._on_state,
            on_step=self.steps.append,
        )


class SessionManager:
    """
    Owns the sessions for a presentation layer.

    - A new query for a name replaces an in-flight query for it
    - Queries and claims for the same name never overlap
    - A claim always uses the latest completed report for its name
    - Finished sessions are dropped; only their reports are kept
    """

    def __init__(
        self,
        dispatcher: QueryDispatcher,
        orchestrator_factory: Callable[[], ClaimOrchestrator],
    ):
        """
        Initialize manager.

        Args:
            dispatcher: Shared query dispatcher
            orchestrator_factory: Builds a fresh orchestrator per claim
        """
        self.dispatcher = dispatcher
        self.orchestrator_factory = orchestrator_factory
        self._queries: dict[str, QuerySession] = {}
        self._claims: dict[str, ClaimSession] = {}
        self._reports: dict[str, AvailabilityReport] = {}

    def _busy_claim(self, name: str) -> bool:
        claim = self._claims.get(name)
        return claim is not None and not claim.done

    def _busy_query(self, name: str) -> bool:
        query = self._queries.get(name)
        return query is not None and not query.done

    def latest_report(self, name: str) -> Optional[AvailabilityReport]:
        return self._reports.get(name)

    def _remember(self, report: AvailabilityReport):
        self._reports[report.name] = report

    def _track(self, store: dict, session: Session):
        store[session.name] = session

        def forget(finished: Session):
            # A replacement may already hold the slot
            if store.get(finished.name) is finished:
                del store[finished.name]

        session.add_done_callback(forget)

    @property
    def active_sessions(self) -> list[Session]:
        """Sessions whose work has not finished yet."""
        return [*self._queries.values(), *self._claims.values()]

    def start_query(self, name: str, kinds: Optional[Iterable] = None) -> QuerySession:
        """
        Start an availability check.

        Raises:
            SessionBusyError: A claim for this name is still running
        """
        query = NameQuery.create(name, kinds)
        if self._busy_claim(query.name):
            raise SessionBusyError(f"A claim for {query.name!r} is still running")

        previous = self._queries.get(query.name)
        if previous is not None and not previous.done:
            logger.debug(f"Replacing in-flight query for {query.name!r}")
            previous.cancel()

        session = QuerySession(self.dispatcher, query, on_complete=self._remember)
        self._track(self._queries, session)
        session.start()
        return session

    def start_claim(self, name: str, kinds: Iterable[RegistryKind]) -> ClaimSession:
        """
        Start a claim against the latest report for the name.

        Raises:
            SessionBusyError: A query or claim for this name is still running
            InvalidPreconditionError: The name has never been checked
        """
        request = ClaimRequest(name=name, kinds=kinds)
        if self._busy_query(request.name):
            raise SessionBusyError(f"An availability check for {request.name!r} is still running")
        if self._busy_claim(request.name):
            raise SessionBusyError(f"A claim for {request.name!r} is already running")

        report = self._reports.get(request.name)
        if report is None:
            raise InvalidPreconditionError(f"Check {request.name!r} before claiming it")

        session = ClaimSession(self.orchestrator_factory(), request, report)
        self._track(self._claims, session)
        session.start()
        return session

    async def aclose(self):
        """Cancel every session still running."""
        for session in self.active_sessions:
            await session.aclose()
