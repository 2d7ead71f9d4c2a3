"""
Shared fixtures: fake probes and adapters, and httpx clients backed by
MockTransport so nothing touches the network.
"""

import asyncio

import httpx
import pytest

from nameclaim.publishers import ClaimStep, PublishAdapter, RepoAdapter, StepAction
from nameclaim.registries import CreatedRepo, GitHubClient, ProbeOutcome, RegistryKind, RegistryProbe


class FakeProbe(RegistryProbe):
    """Probe returning a fixed outcome, optionally after a delay or by raising."""

    def __init__(self, kind, outcome=None, delay=0.0, exc=None):
        self._kind = kind
        self.outcome = outcome or ProbeOutcome.available(kind)
        self.delay = delay
        self.exc = exc
        self.calls = []
        self.cancelled = False
        self.closed = False

    @property
    def kind(self):
        return self._kind

    async def check(self, name):
        self.calls.append(name)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.exc is not None:
            raise self.exc
        return self.outcome

    async def close(self):
        self.closed = True


class FakeRepoAdapter(RepoAdapter):
    """Repo adapter that succeeds, or fails with the given step."""

    def __init__(self, failure_step=None, exc=None):
        self.failure_step = failure_step
        self.exc = exc
        self.calls = []

    async def create_repo(self, name):
        self.calls.append(name)
        if self.exc is not None:
            raise self.exc
        if self.failure_step is not None:
            return self.failure_step
        repo = CreatedRepo(
            name=name,
            full_name=f"octo/{name}",
            html_url=f"https://github.com/octo/{name}",
        )
        return ClaimStep.succeeded(
            RegistryKind.GITHUB, StepAction.CREATE_REPO, f"Created octo/{name}",
            url=repo.html_url, repo=repo,
        )


class FakePublisher(PublishAdapter):
    """Publish adapter with a scripted result."""

    def __init__(self, kind, fail=False, delay=0.0, exc=None, retryable=False):
        self._kind = kind
        self.fail = fail
        self.delay = delay
        self.exc = exc
        self.retryable = retryable
        self.calls = []

    @property
    def kind(self):
        return self._kind

    async def publish(self, name, repo):
        self.calls.append((name, repo.full_name))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        if self.fail:
            return ClaimStep.failed(
                self._kind, StepAction.PUBLISH, "upload rejected", retryable=self.retryable
            )
        return ClaimStep.succeeded(self._kind, StepAction.PUBLISH, "placeholder committed")


@pytest.fixture
def fake_probe():
    """Factory for FakeProbe instances."""
    return FakeProbe


@pytest.fixture
def fake_repo_adapter():
    """Factory for FakeRepoAdapter instances."""
    return FakeRepoAdapter


@pytest.fixture
def fake_publisher():
    """Factory for FakePublisher instances."""
    return FakePublisher


@pytest.fixture
def mock_client():
    """Factory: AsyncClient whose requests are answered by `handler`."""
    def make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return make


@pytest.fixture
def github_api():
    """
    Factory: GitHubClient backed by a routing table.

    Routes map (method, path) to a Response or a callable(request) -> Response.
    Every request is recorded on the returned client's `requests` list.
    """
    def make(routes, token="ghp_test"):
        requests = []

        def handler(request):
            requests.append(request)
            route = routes.get((request.method, request.url.path))
            if route is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return route(request) if callable(route) else route

        client = GitHubClient(
            token,
            api_url="https://api.github.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        client.requests = requests
        return client
    return make
