"""
crates.io probe

API: GET https://crates.io/api/v1/crates/{name}
- 200: Crate exists (taken)
- 404: Crate not found (available)

crates.io rejects requests without a User-Agent header.
"""

from .base import RegistryKind
from .http import HttpRegistryProbe

CRATES_API_URL = "https://crates.io/api/v1/crates"


class CratesProbe(HttpRegistryProbe):
    """Checks crate names on crates.io."""

    @property
    def kind(self) -> RegistryKind:
        return RegistryKind.CRATES

    def url_for(self, name: str) -> str:
        return f"{CRATES_API_URL}/{name}"
