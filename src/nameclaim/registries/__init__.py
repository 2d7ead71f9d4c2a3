"""
Registry probes for nameclaim

One probe per registry, all sharing the RegistryProbe interface.
Registries: npm, crates.io, PyPI, .dev domains (DNS), GitHub repositories
"""

from .base import (
    RegistryKind, RegistryProbe, ProbeOutcome, ProbeStatus,
    REGISTRY_ORDER, normalize_name, parse_kinds, sort_kinds,
)
from .http import HttpRegistryProbe, classify_status
from .npm import NpmProbe
from .crates import CratesProbe
from .pypi import PyPIProbe
from .domain import DevDomainProbe, DomainResult, check_domain, check_domains
from .github import (
    GitHubClient, GitHubProbe, CreatedRepo, GitHubError, AuthenticationError,
    RepoExistsError, InvalidRepoNameError, RateLimitError, GitHubUnavailableError,
)

__all__ = [
    # Base classes and types
    "RegistryKind",
    "RegistryProbe",
    "ProbeOutcome",
    "ProbeStatus",
    "REGISTRY_ORDER",
    "normalize_name",
    "parse_kinds",
    "sort_kinds",
    "HttpRegistryProbe",
    "classify_status",
    # Probes
    "NpmProbe",
    "CratesProbe",
    "PyPIProbe",
    "DevDomainProbe",
    "DomainResult",
    "check_domain",
    "check_domains",
    "GitHubProbe",
    # GitHub
    "GitHubClient",
    "CreatedRepo",
    "GitHubError",
    "AuthenticationError",
    "RepoExistsError",
    "InvalidRepoNameError",
    "RateLimitError",
    "GitHubUnavailableError",
]


def get_probe(kind: RegistryKind, *, github: GitHubClient = None, **kwargs) -> RegistryProbe:
    """
    Factory function to get a probe by registry kind.

    Args:
        kind: Registry to probe
        github: GitHub client (required for RegistryKind.GITHUB)
        **kwargs: Probe-specific options (timeout, user_agent, client, resolver)

    Returns:
        Configured RegistryProbe instance

    Raises:
        ValueError: If the kind has no probe or GitHub has no client
    """
    if kind == RegistryKind.GITHUB:
        if github is None:
            raise ValueError("GitHub probe needs a GitHubClient")
        return GitHubProbe(github)

    if kind == RegistryKind.DEV_DOMAIN:
        return DevDomainProbe(
            resolver=kwargs.get("resolver"),
            timeout=kwargs.get("timeout", 5.0),
        )

    probes = {
        RegistryKind.NPM: NpmProbe,
        RegistryKind.CRATES: CratesProbe,
        RegistryKind.PYPI: PyPIProbe,
    }
    if kind not in probes:
        raise ValueError(f"Unknown registry: {kind}. Valid options: {[k.value for k in REGISTRY_ORDER]}")

    http_kwargs = {k: v for k, v in kwargs.items() if k in ("client", "timeout", "user_agent")}
    return probes[kind](**http_kwargs)
