"""
Base protocol for registry probes

Defines the fixed set of registries, the tagged outcome of a single probe,
and the interface every probe implements.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import FailureKind, InvalidNameError, InvalidQueryError


class RegistryKind(str, Enum):
    """The registries nameclaim knows about. Closed set."""
    NPM = "npm"
    CRATES = "crates"
    PYPI = "pypi"
    DEV_DOMAIN = "dev"
    GITHUB = "github"

    @property
    def label(self) -> str:
        """Human-readable registry name."""
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "RegistryKind":
        """Look up a kind by value or common alias (case-insensitive)."""
        key = value.strip().lower()
        kind = _ALIASES.get(key)
        if kind is None:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown registry: {value}. Valid options: {valid}")
        return kind


_LABELS = {
    RegistryKind.NPM: "npm",
    RegistryKind.CRATES: "crates.io",
    RegistryKind.PYPI: "PyPI",
    RegistryKind.DEV_DOMAIN: ".dev",
    RegistryKind.GITHUB: "GitHub",
}

_ALIASES = {kind.value: kind for kind in RegistryKind}
_ALIASES.update({
    "crates.io": RegistryKind.CRATES,
    "cargo": RegistryKind.CRATES,
    ".dev": RegistryKind.DEV_DOMAIN,
    "domain": RegistryKind.DEV_DOMAIN,
    "gh": RegistryKind.GITHUB,
})

# Stable order used for reports and claim sub-steps
REGISTRY_ORDER = (
    RegistryKind.NPM,
    RegistryKind.CRATES,
    RegistryKind.PYPI,
    RegistryKind.DEV_DOMAIN,
    RegistryKind.GITHUB,
)

MAX_NAME_LENGTH = 100
_NAME_RE = re.compile(r"^[a-z0-9](?:[a-z0-9._-]*[a-z0-9])?$")


def normalize_name(name: str) -> str:
    """
    Normalize and validate a candidate name.

    Args:
        name: Raw user input

    Returns:
        Stripped, lower-cased name

    Raises:
        InvalidNameError: If the name can't be used on any registry
    """
    if not isinstance(name, str):
        raise InvalidNameError(f"Name must be a string, got {type(name).__name__}")

    normalized = name.strip().lower()
    if not normalized:
        raise InvalidNameError("Name must not be empty")
    if len(normalized) > MAX_NAME_LENGTH:
        raise InvalidNameError(f"Name is longer than {MAX_NAME_LENGTH} characters: {normalized!r}")
    if not _NAME_RE.match(normalized):
        raise InvalidNameError(
            f"Invalid name {normalized!r}: use letters, digits, '.', '_' or '-', "
            "starting and ending with a letter or digit"
        )
    return normalized


def sort_kinds(kinds) -> list[RegistryKind]:
    """Sort registry kinds into the stable report order."""
    return sorted(kinds, key=REGISTRY_ORDER.index)


def parse_kinds(kinds) -> frozenset[RegistryKind]:
    """
    Parse a registry selection from kinds or their string names.

    Raises:
        InvalidQueryError: If any entry is not a known registry
    """
    parsed = set()
    for kind in kinds:
        if isinstance(kind, RegistryKind):
            parsed.add(kind)
            continue
        if not isinstance(kind, str):
            raise InvalidQueryError(f"Unknown registry: {kind!r}")
        try:
            parsed.add(RegistryKind.parse(kind))
        except ValueError as e:
            raise InvalidQueryError(str(e)) from e
    return frozenset(parsed)


class ProbeStatus(str, Enum):
    """Outcome tag of a single probe."""
    AVAILABLE = "available"
    TAKEN = "taken"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeOutcome:
    """
    Result of probing one registry for one name.

    An ERROR outcome means the status could not be determined; it is never
    a stand-in for AVAILABLE or TAKEN.
    """
    kind: RegistryKind
    status: ProbeStatus
    reason: Optional[str] = None
    failure: Optional[FailureKind] = None
    retryable: bool = False

    @classmethod
    def available(cls, kind: RegistryKind) -> "ProbeOutcome":
        return cls(kind=kind, status=ProbeStatus.AVAILABLE)

    @classmethod
    def taken(cls, kind: RegistryKind) -> "ProbeOutcome":
        return cls(kind=kind, status=ProbeStatus.TAKEN)

    @classmethod
    def error(
        cls,
        kind: RegistryKind,
        reason: str,
        *,
        failure: FailureKind = FailureKind.UNRESOLVED,
        retryable: bool = False,
    ) -> "ProbeOutcome":
        return cls(
            kind=kind,
            status=ProbeStatus.ERROR,
            reason=reason,
            failure=failure,
            retryable=retryable,
        )

    @property
    def is_available(self) -> bool:
        return self.status == ProbeStatus.AVAILABLE

    @property
    def is_taken(self) -> bool:
        return self.status == ProbeStatus.TAKEN

    @property
    def is_error(self) -> bool:
        return self.status == ProbeStatus.ERROR

    def to_dict(self) -> dict:
        return {
            "registry": self.kind.value,
            "status": self.status.value,
            "reason": self.reason,
            "failure": self.failure.value if self.failure else None,
            "retryable": self.retryable,
        }


class RegistryProbe(ABC):
    """
    Abstract base class for registry probes.

    A probe performs one lookup per call and reports the result as a
    ProbeOutcome. Probes hold no state about previous checks.
    """

    @property
    @abstractmethod
    def kind(self) -> RegistryKind:
        """Registry this probe checks."""
        pass

    @abstractmethod
    async def check(self, name: str) -> ProbeOutcome:
        """
        Check whether a name is free on this registry.

        Args:
            name: Normalized candidate name

        Returns:
            ProbeOutcome for this registry. Network failures are reported
            as ERROR outcomes, not raised.
        """
        pass

    async def close(self):
        """Release any held connections."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r})"
