"""
Error taxonomy for nameclaim

Network and registry failures are never raised past the dispatcher or the
claim orchestrator: they are recorded as data on ProbeOutcome and ClaimStep,
tagged with a FailureKind. The exceptions below are usage errors only.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Why a probe or claim step did not produce a clean answer."""
    UNRESOLVED = "unresolved"  # network/DNS failure, timeout, 5xx
    AUTH_FAILURE = "auth"  # bad or missing token
    NAME_CONFLICT = "name-conflict"  # business outcome, not a crash
    INVALID_NAME = "invalid-name"  # registry rejected the name's shape
    INVALID_PRECONDITION = "invalid-precondition"


class NameClaimError(Exception):
    """Base exception for nameclaim usage errors."""
    pass


class InvalidNameError(NameClaimError, ValueError):
    """Candidate name is malformed."""
    pass


class InvalidQueryError(NameClaimError, ValueError):
    """Registry selection is empty or names an unsupported registry."""
    pass


class InvalidPreconditionError(NameClaimError):
    """Claim requested for a registry not confirmed available."""
    pass


class SessionBusyError(NameClaimError):
    """Another action for the same name is still in flight."""
    pass
