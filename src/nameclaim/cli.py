"""
Command-line interface for nameclaim

Checks a name across npm, crates.io, PyPI, .dev and GitHub, and claims it
by creating a GitHub repository with placeholder packages. Also checks
domains across TLDs and publishes local packages.
"""

import asyncio
import sys
import argparse
import json
import logging
from typing import List, Optional

from .config import config
from .dispatcher import AvailabilityReport, QueryDispatcher, default_probes
from .errors import NameClaimError
from .orchestrator import ClaimOrchestrator, ClaimOverall, ClaimReport
from .publishers import ClaimStep, publish_package
from .registries import (
    GitHubClient, ProbeOutcome, ProbeStatus, RegistryKind, REGISTRY_ORDER, check_domains,
)
from .registries.domain import DEFAULT_TLDS, DomainResult
from .session import SessionManager

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"


def format_outcome(outcome: ProbeOutcome) -> str:
    """Format a single registry outcome for terminal output."""
    if outcome.is_available:
        status = f"{GREEN}✓ Available{RESET}"
    elif outcome.is_taken:
        status = f"{RED}✗ Taken{RESET}"
    else:
        status = f"{YELLOW}? Unknown{RESET}"

    line = f"  {outcome.kind.label:<12} {status}"
    if outcome.is_error:
        hint = ", retry later" if outcome.retryable else ""
        line += f" ({outcome.reason}{hint})"
    return line


def print_availability(report: AvailabilityReport):
    """Print a formatted availability report."""
    print(f"Checking availability for: {report.name}\n")
    for outcome in report.outcomes.values():
        print(format_outcome(outcome))
    print()


def format_step(step: ClaimStep) -> str:
    """Format a single claim step for terminal output."""
    marker = f"{GREEN}✓{RESET}" if step.ok else f"{RED}✗{RESET}"
    action = "create repo" if step.registry == RegistryKind.GITHUB else "publish"
    line = f"  {marker} {step.registry.label:<12} {action:<12} {step.detail}"
    if step.url:
        line += f"\n      {step.url}"
    if not step.ok and step.retryable:
        line += " (retryable)"
    return line


def print_claim(report: ClaimReport):
    """Print a formatted claim report."""
    print(f"Claim for {report.name}:")
    for step in report.steps:
        print(format_step(step))

    overall = report.overall
    if overall == ClaimOverall.SUCCEEDED:
        print(f"\n{GREEN}Claimed on every requested registry.{RESET}")
    elif overall == ClaimOverall.PARTIAL_SUCCESS:
        failed = [s.registry.label for s in report.publish_steps if not s.ok]
        print(f"\n{YELLOW}Partially claimed. Failed: {', '.join(failed)}{RESET}")
    else:
        print(f"\n{RED}Claim aborted before any registry was attempted.{RESET}")
    print()


def format_domain(result: DomainResult) -> str:
    """Format a single domain result for terminal output."""
    if result.status == ProbeStatus.AVAILABLE:
        status = f"{GREEN}✓ Available{RESET}"
    elif result.status == ProbeStatus.TAKEN:
        status = f"{RED}✗ Taken{RESET}"
    else:
        status = f"{YELLOW}? Unknown{RESET} ({result.reason})"
    return f"  {result.domain:<25} {status}"


def parse_kinds(values: Optional[List[str]]) -> Optional[frozenset]:
    """Parse --registries values into RegistryKinds (None = defaults)."""
    if not values:
        return None
    return frozenset(RegistryKind.parse(v) for v in values)


def build_manager(github: GitHubClient) -> tuple[QueryDispatcher, SessionManager]:
    """Dispatcher and session manager sharing one GitHub client."""
    dispatcher = QueryDispatcher(default_probes(config, github=github))
    manager = SessionManager(
        dispatcher,
        lambda: ClaimOrchestrator.from_config(config, github=github),
    )
    return dispatcher, manager


def github_from_config() -> GitHubClient:
    return GitHubClient(
        config.github.token,
        api_url=config.github.api_url,
        timeout=config.github.timeout_seconds,
        user_agent=config.probes.user_agent,
    )


async def run_check(name: str, kinds: Optional[frozenset], as_json: bool) -> int:
    """Check one name and print the report."""
    dispatcher, manager = build_manager(github_from_config())
    async with dispatcher:
        try:
            report = await manager.start_query(name, kinds).wait()
        finally:
            await manager.aclose()

    if as_json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_availability(report)
    return 0


async def run_claim(name: str, kinds: Optional[frozenset], as_json: bool) -> int:
    """
    Re-check a name, then claim it.

    Without --registries, every registry the fresh check reports available
    is claimed. GitHub is always part of the check since the claim is
    anchored on a new repository.
    """
    if not config.github.token:
        print("Error: Set GITHUB_TOKEN environment variable", file=sys.stderr)
        return 1

    check_kinds = (kinds or config.registries.enabled_kinds()) | {RegistryKind.GITHUB}
    dispatcher, manager = build_manager(github_from_config())
    async with dispatcher:
        try:
            report = await manager.start_query(name, check_kinds).wait()
            if not as_json:
                print_availability(report)

            claim_kinds = kinds or frozenset(report.available_kinds)
            claim_kinds = claim_kinds | {RegistryKind.GITHUB}
            claim_report = await manager.start_claim(report.name, claim_kinds).wait()
        finally:
            await manager.aclose()

    if as_json:
        print(json.dumps({
            "availability": report.to_dict(),
            "claim": claim_report.to_dict(),
        }, indent=2))
    else:
        print_claim(claim_report)
    return 1 if claim_report.overall == ClaimOverall.FAILED else 0


async def run_domain_check(name: str, tlds: str, as_json: bool) -> int:
    """Check a name (or full domain) across several TLDs."""
    tld_list = [t.strip() for t in tlds.split(",") if t.strip()]
    if not tld_list:
        raise ValueError("--tlds needs at least one TLD")

    results = await check_domains(name, tld_list, timeout=config.probes.timeout_seconds)

    if as_json:
        print(json.dumps({
            "name": name,
            "results": [r.to_dict() for r in results],
        }, indent=2))
    else:
        print(f"Checking domain availability for: {name}\n")
        for result in results:
            print(format_domain(result))
        print()
    return 0


async def run_publish(target: str, path: str) -> int:
    """Publish the package in path with the registry's own tooling."""
    kind = RegistryKind.parse(target)
    print(f"Publishing to {kind.label} from: {path}")

    step = await publish_package(
        kind, path, timeout=config.claim.publish_timeout_seconds
    )
    if not step.ok:
        print(f"{RED}✗ {step.detail}{RESET}", file=sys.stderr)
        return 1

    print(f"{GREEN}✓ Published successfully!{RESET}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="nameclaim",
        description="Check package name availability across registries and claim it",
        epilog="Example: nameclaim check foobar123xyz --registries npm crates",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    registry_help = f"Registries to use ({', '.join(k.value for k in REGISTRY_ORDER)})"

    # Check command
    check_parser = subparsers.add_parser("check", help="Check name availability")
    check_parser.add_argument("name", help="Package name to check")
    check_parser.add_argument("--registries", "-r", nargs="+", help=registry_help)
    check_parser.add_argument("--json", action="store_true", help="Output results as JSON")

    # Claim command
    claim_parser = subparsers.add_parser(
        "claim", help="Create a GitHub repo and placeholder packages for a name"
    )
    claim_parser.add_argument("name", help="Package name to claim")
    claim_parser.add_argument("--registries", "-r", nargs="+", help=registry_help)
    claim_parser.add_argument("--json", action="store_true", help="Output results as JSON")

    # Domain command
    domain_parser = subparsers.add_parser("domain", help="Check domain availability across TLDs")
    domain_parser.add_argument("name", help="Name or full domain to check")
    domain_parser.add_argument(
        "--tlds",
        default=",".join(DEFAULT_TLDS),
        help=f"Comma-separated TLDs (default: {','.join(DEFAULT_TLDS)})",
    )
    domain_parser.add_argument("--json", action="store_true", help="Output results as JSON")

    # Publish command
    publish_parser = subparsers.add_parser(
        "publish", help="Publish a local package (npm publish, cargo publish, twine upload)"
    )
    publish_parser.add_argument("target", choices=["npm", "crates", "pypi"], help="Registry to publish to")
    publish_parser.add_argument("path", nargs="?", default=".", help="Package directory (default: .)")

    # Parse arguments
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "domain":
            code = asyncio.run(run_domain_check(args.name, args.tlds, args.json))
        elif args.command == "publish":
            code = asyncio.run(run_publish(args.target, args.path))
        elif args.command == "check":
            code = asyncio.run(run_check(args.name, parse_kinds(args.registries), args.json))
        else:
            code = asyncio.run(run_claim(args.name, parse_kinds(args.registries), args.json))
    except (NameClaimError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    sys.exit(code)


if __name__ == "__main__":
    main()
