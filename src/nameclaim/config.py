"""
nameclaim configuration

Timeouts, endpoints, registry toggles and the GitHub token live here.
Environment variables override defaults for deployment flexibility.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .registries.base import RegistryKind


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass
class ProbeConfig:
    """How long we wait on registries"""
    timeout_seconds: float = float(os.getenv("NAMECLAIM_PROBE_TIMEOUT", "5.0"))
    user_agent: str = os.getenv("NAMECLAIM_USER_AGENT", "nameclaim/0.1.0 (package-name-checker)")


@dataclass
class RegistryConfig:
    """Which registries a search covers by default"""
    npm: bool = _env_flag("NAMECLAIM_CHECK_NPM")
    crates: bool = _env_flag("NAMECLAIM_CHECK_CRATES")
    pypi: bool = _env_flag("NAMECLAIM_CHECK_PYPI")
    dev_domain: bool = _env_flag("NAMECLAIM_CHECK_DEV")
    github: bool = _env_flag("NAMECLAIM_CHECK_GITHUB")

    def enabled_kinds(self) -> frozenset[RegistryKind]:
        """Registry kinds switched on, in no particular order."""
        toggles = {
            RegistryKind.NPM: self.npm,
            RegistryKind.CRATES: self.crates,
            RegistryKind.PYPI: self.pypi,
            RegistryKind.DEV_DOMAIN: self.dev_domain,
            RegistryKind.GITHUB: self.github,
        }
        return frozenset(kind for kind, enabled in toggles.items() if enabled)


@dataclass
class GitHubConfig:
    """GitHub API settings. The token is only ever read from the environment."""
    token: Optional[str] = os.getenv("GITHUB_TOKEN") or None
    api_url: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    private_repos: bool = _env_flag("GITHUB_PRIVATE", "false")
    repo_description: str = os.getenv("NAMECLAIM_REPO_DESCRIPTION", "Name reserved with nameclaim")
    timeout_seconds: float = float(os.getenv("GITHUB_TIMEOUT", "10.0"))


@dataclass
class ClaimConfig:
    """Claim behavior"""
    concurrent_publish: bool = _env_flag("NAMECLAIM_CONCURRENT_PUBLISH", "false")
    # Local `publish` command (npm publish, cargo publish, twine upload)
    publish_timeout_seconds: float = float(os.getenv("NAMECLAIM_PUBLISH_TIMEOUT", "600"))


@dataclass
class Config:
    """Master config"""
    probes: ProbeConfig = field(default_factory=ProbeConfig)
    registries: RegistryConfig = field(default_factory=RegistryConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    claim: ClaimConfig = field(default_factory=ClaimConfig)

    def search_kinds(self) -> frozenset[RegistryKind]:
        """
        Default registry set for a search.

        GitHub is left out without a token, since its probe could only
        report an auth error.
        """
        kinds = self.registries.enabled_kinds()
        if not self.github.token:
            kinds = kinds - {RegistryKind.GITHUB}
        return kinds

    # Quick presets
    @classmethod
    def fast_mode(cls) -> "Config":
        """Short timeouts for development and testing"""
        cfg = cls()
        cfg.probes.timeout_seconds = 1.0
        cfg.github.timeout_seconds = 2.0
        return cfg


# Singleton
config = Config()
