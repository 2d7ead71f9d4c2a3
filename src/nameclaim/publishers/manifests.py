"""
Placeholder package publishers

npm, crates.io and PyPI have no "reserve this name" API: the name is only
yours once a package is uploaded. These adapters prepare the GitHub side of
that upload by committing a minimal, publishable package skeleton into the
claim repository. The step detail names the command that finishes the job.

The .dev adapter is a stub: registering a domain needs a registrar account.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..errors import FailureKind
from ..registries.base import RegistryKind
from ..registries.github import CreatedRepo, GitHubClient, GitHubError
from .base import ClaimStep, PublishAdapter, StepAction

logger = logging.getLogger(__name__)

PLACEHOLDER_VERSION = "0.0.0"
_CRATE_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*$")


def render_npm(name: str, repo: CreatedRepo) -> dict[str, str]:
    package = {
        "name": name,
        "version": PLACEHOLDER_VERSION,
        "description": f"Placeholder for {name}",
        "license": "MIT",
        "repository": {"type": "git", "url": f"git+{repo.html_url}.git"},
    }
    return {"package.json": json.dumps(package, indent=2) + "\n"}


def render_cargo(name: str, repo: CreatedRepo) -> dict[str, str]:
    if not _CRATE_NAME_RE.match(name):
        raise ValueError(f"{name!r} is not a valid crate name")
    manifest = (
        "[package]\n"
        f'name = "{name}"\n'
        f'version = "{PLACEHOLDER_VERSION}"\n'
        'edition = "2021"\n'
        f'description = "Placeholder for {name}"\n'
        'license = "MIT"\n'
        f'repository = "{repo.html_url}"\n'
    )
    return {
        "Cargo.toml": manifest,
        "src/lib.rs": f"//! Placeholder for {name}\n",
    }


def render_pyproject(name: str, repo: CreatedRepo) -> dict[str, str]:
    module = re.sub(r"[^a-z0-9_]", "_", name)
    if module[0].isdigit():
        module = f"_{module}"
    manifest = (
        "[build-system]\n"
        'requires = ["setuptools>=61"]\n'
        'build-backend = "setuptools.build_meta"\n'
        "\n"
        "[project]\n"
        f'name = "{name}"\n'
        f'version = "{PLACEHOLDER_VERSION}"\n'
        f'description = "Placeholder for {name}"\n'
        'license = {text = "MIT"}\n'
        "\n"
        "[project.urls]\n"
        f'Repository = "{repo.html_url}"\n'
    )
    return {
        "pyproject.toml": manifest,
        f"{module}/__init__.py": f'"""Placeholder for {name}."""\n',
    }


@dataclass(frozen=True)
class ManifestTemplate:
    """Files that make up a placeholder package for one registry."""
    kind: RegistryKind
    render: Callable[[str, CreatedRepo], dict[str, str]]
    publish_command: str


NPM_TEMPLATE = ManifestTemplate(RegistryKind.NPM, render_npm, "npm publish")
CRATES_TEMPLATE = ManifestTemplate(RegistryKind.CRATES, render_cargo, "cargo publish")
PYPI_TEMPLATE = ManifestTemplate(
    RegistryKind.PYPI, render_pyproject, "python -m build && twine upload dist/*"
)


class ManifestPublishAdapter(PublishAdapter):
    """Commits a placeholder package for one registry into the claim repo."""

    def __init__(self, template: ManifestTemplate, client: GitHubClient):
        self.template = template
        self.client = client

    @property
    def kind(self) -> RegistryKind:
        return self.template.kind

    async def publish(self, name: str, repo: CreatedRepo) -> ClaimStep:
        try:
            files = self.template.render(name, repo)
        except ValueError as e:
            return ClaimStep.failed(
                self.kind, StepAction.PUBLISH, str(e), failure=FailureKind.INVALID_NAME
            )

        first_url: Optional[str] = None
        for path, content in files.items():
            try:
                url = await self.client.put_file(
                    repo, path, content, f"Add {self.kind.label} placeholder: {path}"
                )
            except GitHubError as e:
                logger.warning(f"{self.kind.label} placeholder for {name!r} failed at {path}: {e}")
                return ClaimStep.failed(
                    self.kind,
                    StepAction.PUBLISH,
                    str(e),
                    failure=e.failure,
                    retryable=e.retryable,
                )
            first_url = first_url or url

        return ClaimStep.succeeded(
            self.kind,
            StepAction.PUBLISH,
            f"Run '{self.template.publish_command}' from {repo.full_name} to claim the name",
            url=first_url,
        )


class DevDomainNoticeAdapter(PublishAdapter):
    """Stub: points the user at a registrar, changes nothing."""

    @property
    def kind(self) -> RegistryKind:
        return RegistryKind.DEV_DOMAIN

    async def publish(self, name: str, repo: CreatedRepo) -> ClaimStep:
        return ClaimStep.succeeded(
            self.kind,
            StepAction.PUBLISH,
            f"Register {name}.dev through a registrar (e.g. Namecheap, Porkbun)",
        )


def default_publishers(client: GitHubClient) -> dict[RegistryKind, PublishAdapter]:
    """Publish adapter per registry, keyed by kind."""
    adapters = [
        ManifestPublishAdapter(NPM_TEMPLATE, client),
        ManifestPublishAdapter(CRATES_TEMPLATE, client),
        ManifestPublishAdapter(PYPI_TEMPLATE, client),
        DevDomainNoticeAdapter(),
    ]
    return {adapter.kind: adapter for adapter in adapters}
