"""
Tests for claim adapters.
"""

import asyncio
import base64
import json
import sys

import httpx
import pytest

from nameclaim.errors import FailureKind, InvalidPreconditionError, InvalidQueryError
from nameclaim.publishers import (
    CRATES_TEMPLATE,
    NPM_TEMPLATE,
    PYPI_TEMPLATE,
    ClaimStep,
    DevDomainNoticeAdapter,
    GitHubRepoAdapter,
    ManifestPublishAdapter,
    StepAction,
    StepStatus,
    default_publishers,
    publish_package,
    run_command,
)
from nameclaim.publishers.manifests import render_cargo, render_pyproject
from nameclaim.registries import CreatedRepo, RegistryKind

REPO = CreatedRepo(
    name="foobar123xyz",
    full_name="octo/foobar123xyz",
    html_url="https://github.com/octo/foobar123xyz",
)


def created(request):
    body = json.loads(request.content)
    return httpx.Response(201, json={
        "name": body["name"],
        "full_name": f"octo/{body['name']}",
        "html_url": f"https://github.com/octo/{body['name']}",
        "default_branch": "main",
    })


def committed(request):
    path = request.url.path.split("/contents/", 1)[1]
    return httpx.Response(201, json={
        "content": {"html_url": f"https://github.com/octo/foobar123xyz/blob/main/{path}"},
    })


class TestClaimStep:
    """Tests for ClaimStep."""

    def test_failed_step_has_reason(self):
        step = ClaimStep.failed(RegistryKind.NPM, StepAction.PUBLISH, "nope", retryable=True)

        assert step.status == StepStatus.FAILED
        assert step.reason == "nope"
        assert step.failure == FailureKind.UNRESOLVED
        assert not step.ok

    def test_succeeded_step_has_no_reason(self):
        step = ClaimStep.succeeded(RegistryKind.NPM, StepAction.PUBLISH, "done")
        assert step.ok
        assert step.reason is None

    def test_to_dict(self):
        data = ClaimStep.failed(
            RegistryKind.GITHUB, StepAction.CREATE_REPO, "exists",
            failure=FailureKind.NAME_CONFLICT,
        ).to_dict()

        assert data["registry"] == "github"
        assert data["action"] == "create_repo"
        assert data["failure"] == "name-conflict"
        assert "repo" not in data


class TestGitHubRepoAdapter:
    """Tests for repository creation."""

    @pytest.mark.asyncio
    async def test_creates_repo(self, github_api):
        """Test a 201 becomes a successful step carrying the repo."""
        client = github_api({("POST", "/user/repos"): created})
        adapter = GitHubRepoAdapter(client, description="Reserved", private=True)

        step = await adapter.create_repo("foobar123xyz")

        assert step.ok
        assert step.action == StepAction.CREATE_REPO
        assert step.repo.full_name == "octo/foobar123xyz"
        assert step.url == "https://github.com/octo/foobar123xyz"

        payload = json.loads(client.requests[0].content)
        assert payload == {
            "name": "foobar123xyz",
            "description": "Reserved",
            "private": True,
            "auto_init": True,
        }

    @pytest.mark.asyncio
    async def test_existing_repo_is_name_conflict(self, github_api):
        """Test a 422 'already exists' is a non-retryable name conflict."""
        client = github_api({
            ("POST", "/user/repos"): httpx.Response(422, json={
                "message": "Repository creation failed.",
                "errors": [{"field": "name", "message": "name already exists on this account"}],
            }),
        })

        step = await GitHubRepoAdapter(client).create_repo("foobar123xyz")

        assert not step.ok
        assert step.failure == FailureKind.NAME_CONFLICT
        assert step.retryable is False
        assert step.repo is None

    @pytest.mark.asyncio
    async def test_other_422_is_invalid_name(self, github_api):
        client = github_api({
            ("POST", "/user/repos"): httpx.Response(422, json={"message": "Validation Failed"}),
        })

        step = await GitHubRepoAdapter(client).create_repo("foobar123xyz")

        assert step.failure == FailureKind.INVALID_NAME

    @pytest.mark.asyncio
    async def test_bad_token(self, github_api):
        client = github_api({("POST", "/user/repos"): httpx.Response(401)})

        step = await GitHubRepoAdapter(client).create_repo("foobar123xyz")

        assert step.failure == FailureKind.AUTH_FAILURE
        assert step.retryable is False

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self, github_api):
        client = github_api({("POST", "/user/repos"): httpx.Response(503)})

        step = await GitHubRepoAdapter(client).create_repo("foobar123xyz")

        assert not step.ok
        assert step.retryable is True

    @pytest.mark.asyncio
    async def test_rate_limited_is_retryable(self, github_api):
        """Test a 429 on creation leaves the claim retryable."""
        client = github_api({("POST", "/user/repos"): httpx.Response(429)})

        step = await GitHubRepoAdapter(client).create_repo("foobar123xyz")

        assert not step.ok
        assert step.failure == FailureKind.UNRESOLVED
        assert step.retryable is True
        assert step.repo is None

    @pytest.mark.asyncio
    async def test_no_token(self, github_api):
        """Test a missing token fails without touching the network."""
        client = github_api({}, token=None)

        step = await GitHubRepoAdapter(client).create_repo("foobar123xyz")

        assert step.failure == FailureKind.AUTH_FAILURE
        assert client.requests == []


class TestManifestRendering:
    """Tests for placeholder package files."""

    def test_npm_package_json(self):
        files = NPM_TEMPLATE.render("foobar123xyz", REPO)
        package = json.loads(files["package.json"])

        assert package["name"] == "foobar123xyz"
        assert package["version"] == "0.0.0"
        assert package["repository"]["url"] == "git+https://github.com/octo/foobar123xyz.git"

    def test_cargo_rejects_leading_digit(self):
        with pytest.raises(ValueError, match="crate name"):
            render_cargo("1password", REPO)

    def test_cargo_files(self):
        files = render_cargo("foobar123xyz", REPO)
        assert set(files) == {"Cargo.toml", "src/lib.rs"}
        assert 'name = "foobar123xyz"' in files["Cargo.toml"]

    def test_pyproject_module_name(self):
        """Test the import package is a valid Python identifier."""
        files = render_pyproject("my-pkg.js", REPO)
        assert "my_pkg_js/__init__.py" in files

        files = render_pyproject("3d-tools", REPO)
        assert "_3d_tools/__init__.py" in files


class TestManifestPublishAdapter:
    """Tests for placeholder commits."""

    @pytest.mark.asyncio
    async def test_commits_every_file(self, github_api):
        """Test each rendered file is PUT with base64 content."""
        client = github_api({
            ("PUT", "/repos/octo/foobar123xyz/contents/Cargo.toml"): committed,
            ("PUT", "/repos/octo/foobar123xyz/contents/src/lib.rs"): committed,
        })
        adapter = ManifestPublishAdapter(CRATES_TEMPLATE, client)

        step = await adapter.publish("foobar123xyz", REPO)

        assert step.ok
        assert step.registry == RegistryKind.CRATES
        assert "cargo publish" in step.detail
        assert step.url == "https://github.com/octo/foobar123xyz/blob/main/Cargo.toml"

        assert [r.url.path for r in client.requests] == [
            "/repos/octo/foobar123xyz/contents/Cargo.toml",
            "/repos/octo/foobar123xyz/contents/src/lib.rs",
        ]
        body = json.loads(client.requests[0].content)
        assert body["branch"] == "main"
        assert 'name = "foobar123xyz"' in base64.b64decode(body["content"]).decode()

    @pytest.mark.asyncio
    async def test_invalid_crate_name(self, github_api):
        """Test a name cargo won't accept fails before any commit."""
        client = github_api({})

        step = await ManifestPublishAdapter(CRATES_TEMPLATE, client).publish("9lives", REPO)

        assert not step.ok
        assert step.failure == FailureKind.INVALID_NAME
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_commit_conflict_is_retryable(self, github_api):
        client = github_api({
            ("PUT", "/repos/octo/foobar123xyz/contents/package.json"): httpx.Response(409),
        })

        step = await ManifestPublishAdapter(NPM_TEMPLATE, client).publish("foobar123xyz", REPO)

        assert not step.ok
        assert step.retryable is True

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, github_api):
        """Test later files aren't attempted once one commit fails."""
        client = github_api({
            ("PUT", "/repos/octo/foobar123xyz/contents/pyproject.toml"): httpx.Response(500),
        })

        step = await ManifestPublishAdapter(PYPI_TEMPLATE, client).publish("foobar123xyz", REPO)

        assert not step.ok
        assert len(client.requests) == 1


class TestDevDomainNoticeAdapter:
    """Tests for the .dev stub."""

    @pytest.mark.asyncio
    async def test_points_to_registrar(self):
        step = await DevDomainNoticeAdapter().publish("foobar123xyz", REPO)

        assert step.ok
        assert step.registry == RegistryKind.DEV_DOMAIN
        assert "foobar123xyz.dev" in step.detail


def test_default_publishers_cover_claimable_registries(github_api):
    publishers = default_publishers(github_api({}))

    assert set(publishers) == {
        RegistryKind.NPM, RegistryKind.CRATES, RegistryKind.PYPI, RegistryKind.DEV_DOMAIN,
    }
    assert all(kind == adapter.kind for kind, adapter in publishers.items())


class TestPublishPackage:
    """Tests for publishing a local package with the registry's tooling."""

    @staticmethod
    def recording_runner(fail_on=None, on_run=None):
        calls = []

        async def run(argv, cwd):
            calls.append((list(argv), cwd))
            if on_run is not None:
                on_run(argv, cwd)
            return 1 if fail_on in argv else 0

        run.calls = calls
        return run

    @pytest.mark.asyncio
    async def test_npm_publish(self, tmp_path):
        (tmp_path / "package.json").write_text("{}")
        runner = self.recording_runner()

        step = await publish_package(RegistryKind.NPM, tmp_path, runner=runner)

        assert step.ok
        assert step.action == StepAction.PUBLISH
        assert runner.calls == [(["npm", "publish"], tmp_path.resolve())]

    @pytest.mark.asyncio
    async def test_pypi_builds_then_uploads_dist(self, tmp_path):
        """Test the upload lists whatever the build put in dist/."""
        (tmp_path / "pyproject.toml").write_text("[project]\nname = 'foo'\n")

        def build(argv, cwd):
            if "build" in argv:
                (cwd / "dist").mkdir()
                (cwd / "dist" / "foo-0.1.0.tar.gz").write_text("")

        runner = self.recording_runner(on_run=build)

        step = await publish_package(RegistryKind.PYPI, tmp_path, runner=runner)

        assert step.ok
        build_argv, upload_argv = [argv for argv, _ in runner.calls]
        assert build_argv == [sys.executable, "-m", "build"]
        assert upload_argv[:4] == [sys.executable, "-m", "twine", "upload"]
        assert upload_argv[4].endswith("foo-0.1.0.tar.gz")

    @pytest.mark.asyncio
    async def test_failed_command_stops(self, tmp_path):
        """Test a failing build never reaches the upload."""
        (tmp_path / "setup.py").write_text("")
        runner = self.recording_runner(fail_on="build")

        step = await publish_package(RegistryKind.PYPI, tmp_path, runner=runner)

        assert not step.ok
        assert "python -m build failed" in step.detail
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_tool(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text("")

        async def runner(argv, cwd):
            raise FileNotFoundError(argv[0])

        step = await publish_package(RegistryKind.CRATES, tmp_path, runner=runner)

        assert not step.ok
        assert "cargo not found" in step.detail

    @pytest.mark.asyncio
    async def test_missing_manifest(self, tmp_path):
        """Test a directory without a manifest is refused before running anything."""
        runner = self.recording_runner()

        with pytest.raises(InvalidPreconditionError, match="Cargo.toml"):
            await publish_package(RegistryKind.CRATES, tmp_path, runner=runner)
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_not_a_publish_target(self, tmp_path):
        with pytest.raises(InvalidQueryError):
            await publish_package(RegistryKind.GITHUB, tmp_path)


class TestRunCommand:
    """Tests for the subprocess runner."""

    @pytest.mark.asyncio
    async def test_exit_status(self, tmp_path):
        status = await run_command([sys.executable, "-c", "raise SystemExit(3)"], tmp_path)
        assert status == 3

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        """Test a command that outlives its timeout is killed."""
        marker = tmp_path / "finished"
        script = f"import time, pathlib; time.sleep(5); pathlib.Path({str(marker)!r}).write_text('x')"

        with pytest.raises(asyncio.TimeoutError):
            await run_command([sys.executable, "-c", script], tmp_path, timeout=0.2)

        await asyncio.sleep(0.1)
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_missing_program(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await run_command(["nameclaim-no-such-tool"], tmp_path)
