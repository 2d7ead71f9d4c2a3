"""
npm registry probe

API: GET https://registry.npmjs.org/{package}
- 200: Package exists (taken)
- 404: Package not found (available)
"""

from .base import RegistryKind
from .http import HttpRegistryProbe

NPM_REGISTRY_URL = "https://registry.npmjs.org"


class NpmProbe(HttpRegistryProbe):
    """Checks package names on the public npm registry."""

    @property
    def kind(self) -> RegistryKind:
        return RegistryKind.NPM

    def url_for(self, name: str) -> str:
        return f"{NPM_REGISTRY_URL}/{name}"
