"""
nameclaim: concurrent package-name availability checker and claimer.

Checks a name on npm, crates.io, PyPI, .dev and GitHub in one go, then
claims it by creating a GitHub repository seeded with placeholder packages.
"""

__version__ = "0.1.0"

from .config import config
from .errors import (
    FailureKind, NameClaimError, InvalidNameError, InvalidQueryError,
    InvalidPreconditionError, SessionBusyError,
)
from .registries import RegistryKind, ProbeOutcome, ProbeStatus
from .dispatcher import NameQuery, AvailabilityReport, QueryDispatcher, quick_check
from .publishers import ClaimStep, StepAction, StepStatus
from .orchestrator import (
    ClaimOrchestrator,
    ClaimRequest,
    ClaimReport,
    ClaimState,
    ClaimOverall,
)
from .session import QuerySession, ClaimSession, SessionManager, SessionState

__all__ = [
    # Config
    "config",
    # Errors
    "FailureKind",
    "NameClaimError",
    "InvalidNameError",
    "InvalidQueryError",
    "InvalidPreconditionError",
    "SessionBusyError",
    # Registries
    "RegistryKind",
    "ProbeOutcome",
    "ProbeStatus",
    # Query
    "NameQuery",
    "AvailabilityReport",
    "QueryDispatcher",
    "quick_check",
    # Claim
    "ClaimStep",
    "StepAction",
    "StepStatus",
    "ClaimOrchestrator",
    "ClaimRequest",
    "ClaimReport",
    "ClaimState",
    "ClaimOverall",
    # Sessions
    "QuerySession",
    "ClaimSession",
    "SessionManager",
    "SessionState",
]
