"""
PyPI probe

API: GET https://pypi.org/simple/{name}/
- 200: Project exists (taken)
- 404: Project not found (available)

The /simple/ index also answers 200 for projects registered without any
release, which the JSON API reports as 404.
"""

from .base import RegistryKind
from .http import HttpRegistryProbe

PYPI_SIMPLE_URL = "https://pypi.org/simple"


class PyPIProbe(HttpRegistryProbe):
    """Checks project names on PyPI."""

    @property
    def kind(self) -> RegistryKind:
        return RegistryKind.PYPI

    def url_for(self, name: str) -> str:
        return f"{PYPI_SIMPLE_URL}/{name}/"
