"""
Domain probes

Resolves an A record for {name}.{tld}. This is NOT a definitive availability
check: a registered domain without DNS records looks the same as a free one.
For accurate results you'd need a WHOIS/RDAP or registrar API.

- NXDOMAIN: no records, might be available
- Name exists (with or without an A record): taken
- Resolver failure or timeout: unknown

Lookups run on the event loop through dnspython's async resolver, so
cancelling a check stops the query itself.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..errors import FailureKind
from .base import ProbeOutcome, ProbeStatus, RegistryKind, RegistryProbe

logger = logging.getLogger(__name__)

DEV_TLD = "dev"
DEFAULT_TLDS = ("com", "net", "org", "io", "dev")
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

Resolver = Callable[[str], Awaitable[list]]


async def resolve_a_record(host: str, *, lifetime: Optional[float] = None) -> list[str]:
    """
    Resolve IPv4 addresses for a fully qualified host.

    Raises:
        dns.resolver.NXDOMAIN: The name does not exist
        dns.resolver.NoAnswer: The name exists without an A record
        dns.exception.DNSException: Timeout or resolver failure
    """
    resolver = dns.asyncresolver.Resolver()
    answer = await resolver.resolve(host, "A", search=False, lifetime=lifetime)
    return [rdata.address for rdata in answer]


@dataclass(frozen=True)
class DomainResult:
    """Result of checking one full domain."""
    domain: str
    status: ProbeStatus
    reason: Optional[str] = None
    failure: Optional[FailureKind] = None
    retryable: bool = False

    @property
    def is_available(self) -> bool:
        return self.status == ProbeStatus.AVAILABLE

    @property
    def is_taken(self) -> bool:
        return self.status == ProbeStatus.TAKEN

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "status": self.status.value,
            "reason": self.reason,
            "failure": self.failure.value if self.failure else None,
            "retryable": self.retryable,
        }


def _error(domain: str, reason: str, *, failure=FailureKind.UNRESOLVED, retryable=True) -> DomainResult:
    return DomainResult(domain, ProbeStatus.ERROR, reason, failure, retryable)


async def check_domain(
    domain: str,
    *,
    resolver: Optional[Resolver] = None,
    timeout: float = 5.0,
) -> DomainResult:
    """
    Check one full domain (e.g. "example.com").

    Args:
        domain: Domain to check; every label must be a valid DNS label
        resolver: Coroutine function returning addresses for a host
        timeout: Lookup timeout in seconds

    Returns:
        DomainResult; lookup failures are reported, never raised
    """
    domain = domain.strip().lower().rstrip(".")
    labels = domain.split(".")
    if len(labels) < 2 or not all(_LABEL_RE.match(label) for label in labels):
        return _error(
            domain, f"{domain!r} is not a valid domain name",
            failure=FailureKind.INVALID_NAME, retryable=False,
        )

    if resolver is None:
        lookup = resolve_a_record(domain, lifetime=timeout)
    else:
        lookup = resolver(domain)

    try:
        addresses = await asyncio.wait_for(lookup, timeout=timeout)
    except (asyncio.TimeoutError, dns.exception.Timeout):
        return _error(domain, f"DNS lookup for {domain} timed out")
    except dns.resolver.NXDOMAIN:
        logger.debug(f"{domain}: NXDOMAIN")
        return DomainResult(domain, ProbeStatus.AVAILABLE)
    except dns.resolver.NoAnswer:
        # Name exists, just no A record
        return DomainResult(domain, ProbeStatus.TAKEN)
    except dns.resolver.NoNameservers as e:
        return _error(domain, f"DNS server failure: {e}")
    except dns.exception.DNSException as e:
        return _error(domain, f"DNS lookup failed: {e}")

    if addresses:
        logger.debug(f"{domain} resolves to {len(addresses)} address(es)")
        return DomainResult(domain, ProbeStatus.TAKEN)
    return DomainResult(domain, ProbeStatus.AVAILABLE)


def expand_domains(name: str, tlds: Iterable[str] = DEFAULT_TLDS) -> list[str]:
    """
    Domains to check for a name.

    A bare name is paired with every TLD. A full domain is checked as given,
    plus its base under each other TLD.
    """
    name = name.strip().lower().rstrip(".")
    tlds = [t.strip().lower().lstrip(".") for t in tlds if t.strip()]
    if "." not in name:
        return [f"{name}.{tld}" for tld in tlds]

    base = name.rsplit(".", 1)[0]
    domains = [name]
    for tld in tlds:
        domain = f"{base}.{tld}"
        if domain not in domains:
            domains.append(domain)
    return domains


async def check_domains(
    name: str,
    tlds: Iterable[str] = DEFAULT_TLDS,
    *,
    resolver: Optional[Resolver] = None,
    timeout: float = 5.0,
) -> list[DomainResult]:
    """Check a name across several TLDs concurrently, in TLD order."""
    domains = expand_domains(name, tlds)
    return list(await asyncio.gather(
        *[check_domain(d, resolver=resolver, timeout=timeout) for d in domains]
    ))


class DevDomainProbe(RegistryProbe):
    """Best-effort availability check for {name}.dev via DNS."""

    def __init__(
        self,
        resolver: Optional[Resolver] = None,
        *,
        timeout: float = 5.0,
    ):
        """
        Initialize probe.

        Args:
            resolver: Coroutine function returning resolved addresses for a
                host, raising dnspython resolver errors on lookup failure
            timeout: Resolver timeout in seconds
        """
        self._resolve = resolver
        self._timeout = timeout

    @property
    def kind(self) -> RegistryKind:
        return RegistryKind.DEV_DOMAIN

    @staticmethod
    def domain_for(name: str) -> str:
        return f"{name}.{DEV_TLD}"

    async def check(self, name: str) -> ProbeOutcome:
        if not _LABEL_RE.match(name):
            return ProbeOutcome.error(
                self.kind,
                f"{name!r} is not a valid DNS label",
                failure=FailureKind.INVALID_NAME,
            )

        result = await check_domain(
            self.domain_for(name), resolver=self._resolve, timeout=self._timeout
        )
        if result.status == ProbeStatus.ERROR:
            return ProbeOutcome.error(
                self.kind, result.reason, failure=result.failure, retryable=result.retryable
            )
        return ProbeOutcome(kind=self.kind, status=result.status)
