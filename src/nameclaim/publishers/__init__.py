"""
Claim adapters for nameclaim

GitHub repository creation plus one publish adapter per package registry.
"""

from .base import ClaimStep, StepAction, StepStatus, RepoAdapter, PublishAdapter
from .github import GitHubRepoAdapter
from .commands import publish_package, run_command
from .manifests import (
    ManifestTemplate, ManifestPublishAdapter, DevDomainNoticeAdapter,
    NPM_TEMPLATE, CRATES_TEMPLATE, PYPI_TEMPLATE, default_publishers,
)

__all__ = [
    "ClaimStep",
    "StepAction",
    "StepStatus",
    "RepoAdapter",
    "PublishAdapter",
    "GitHubRepoAdapter",
    "ManifestTemplate",
    "ManifestPublishAdapter",
    "DevDomainNoticeAdapter",
    "NPM_TEMPLATE",
    "CRATES_TEMPLATE",
    "PYPI_TEMPLATE",
    "default_publishers",
    "publish_package",
    "run_command",
]
