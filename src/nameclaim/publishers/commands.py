"""
Local publish commands

Publishes a package directory with the registry's own tooling:
- npm:    npm publish
- crates: cargo publish
- PyPI:   python -m build, then python -m twine upload dist/*

Commands run as subprocesses with the terminal attached, so login and OTP
prompts reach the user. Cancelling a publish kills the running command.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Iterator, Optional, Sequence, Union

from ..errors import InvalidPreconditionError, InvalidQueryError
from ..registries.base import RegistryKind
from .base import ClaimStep, StepAction

logger = logging.getLogger(__name__)

# Any one of these marks a publishable package directory
MANIFESTS = {
    RegistryKind.NPM: ("package.json",),
    RegistryKind.CRATES: ("Cargo.toml",),
    RegistryKind.PYPI: ("pyproject.toml", "setup.py"),
}

Runner = Callable[[Sequence[str], Path], Awaitable[int]]


async def run_command(argv: Sequence[str], cwd: Path, *, timeout: Optional[float] = None) -> int:
    """
    Run a command in cwd and return its exit status.

    Raises:
        FileNotFoundError: The program isn't installed
        asyncio.TimeoutError: The command outlived the timeout (it is killed)
    """
    logger.debug(f"Running {' '.join(argv)} in {cwd}")
    process = await asyncio.create_subprocess_exec(*argv, cwd=str(cwd))
    try:
        return await asyncio.wait_for(process.wait(), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise


def package_dir(kind: RegistryKind, path: Union[str, Path]) -> Path:
    """
    Resolve and validate the directory to publish from.

    Raises:
        InvalidQueryError: The registry has no publish command
        InvalidPreconditionError: Missing directory or manifest
    """
    if kind not in MANIFESTS:
        valid = ", ".join(k.value for k in MANIFESTS)
        raise InvalidQueryError(f"Cannot publish to {kind.label}. Valid options: {valid}")

    directory = Path(path).expanduser().resolve()
    if not directory.is_dir():
        raise InvalidPreconditionError(f"Not a directory: {directory}")

    manifests = MANIFESTS[kind]
    if not any((directory / m).is_file() for m in manifests):
        raise InvalidPreconditionError(
            f"No {' or '.join(manifests)} in {directory}; nothing to publish to {kind.label}"
        )
    return directory


def describe(argv: Sequence[str]) -> str:
    """Short display form, e.g. "npm publish" or "python -m build"."""
    if argv[0] == sys.executable:
        return "python " + " ".join(argv[1:3])
    return " ".join(argv[:2])


def publish_commands(kind: RegistryKind, directory: Path) -> Iterator[list[str]]:
    """
    Commands for one publish, in order.

    Lazy: the PyPI upload lists dist/ only after the build has run.
    """
    if kind == RegistryKind.NPM:
        yield ["npm", "publish"]
    elif kind == RegistryKind.CRATES:
        yield ["cargo", "publish"]
    elif kind == RegistryKind.PYPI:
        yield [sys.executable, "-m", "build"]
        dist_dir = directory / "dist"
        dist = sorted(str(p) for p in dist_dir.iterdir()) if dist_dir.is_dir() else []
        yield [sys.executable, "-m", "twine", "upload", *dist]


async def publish_package(
    kind: RegistryKind,
    path: Union[str, Path] = ".",
    *,
    runner: Optional[Runner] = None,
    timeout: Optional[float] = None,
) -> ClaimStep:
    """
    Publish a local package to its registry.

    Args:
        kind: npm, crates or PyPI
        path: Package directory
        runner: Coroutine function (argv, cwd) -> exit status
        timeout: Per-command timeout in seconds (None waits forever)

    Returns:
        ClaimStep for the publish; command failures are reported, not raised

    Raises:
        InvalidQueryError: The registry has no publish command
        InvalidPreconditionError: Missing directory or manifest
    """
    directory = package_dir(kind, path)
    if runner is None:
        async def runner(argv, cwd):
            return await run_command(argv, cwd, timeout=timeout)

    for argv in publish_commands(kind, directory):
        command = describe(argv)
        try:
            status = await runner(argv, directory)
        except FileNotFoundError:
            return ClaimStep.failed(
                kind, StepAction.PUBLISH, f"{argv[0]} not found; install it to publish to {kind.label}"
            )
        except asyncio.TimeoutError:
            return ClaimStep.failed(
                kind, StepAction.PUBLISH, f"{command} timed out", retryable=True
            )

        if status != 0:
            logger.warning(f"{command} exited with status {status}")
            return ClaimStep.failed(
                kind, StepAction.PUBLISH, f"{command} failed with exit status {status}"
            )

    logger.info(f"Published {directory.name} to {kind.label}")
    return ClaimStep.succeeded(
        kind, StepAction.PUBLISH, f"Published {directory.name} to {kind.label}"
    )
