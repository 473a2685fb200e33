"""
SSRF protection for outbound header scans.

Every URL we are about to request (the input and each redirect target) goes
through validate_endpoint(): protocol and port allow-lists first, then the
hostname is resolved and every address is checked against the private and
reserved ranges below.

The connection itself still resolves the hostname through the OS, so the
validated addresses are not pinned to the socket. Validation also uses a
different resolver (dnspython, for its enforceable timeout) than the
connection (getaddrinfo), so the two can disagree, e.g. on /etc/hosts
entries or split-horizon DNS. Re-validating on every hop narrows the DNS
rebinding window but does not close it.
"""

import ipaddress
import logging
import socket
import time
from urllib.parse import urlsplit

import dns.exception
import dns.name
import dns.resolver

from . import config
from .errors import (
    BlockedDestination,
    InvalidPort,
    InvalidProtocol,
    InvalidUrl,
    ResolutionFailed,
)

logger = logging.getLogger(__name__)

BLOCKED_IPV4_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/8"),  # "this" network
    ipaddress.ip_network("127.0.0.0/8"),  # loopback
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),  # link-local, cloud metadata
    ipaddress.ip_network("100.64.0.0/10"),  # CGNAT
    ipaddress.ip_network("198.18.0.0/15"),  # benchmark
]
# Multicast and everything reserved above it
IPV4_MULTICAST_START = ipaddress.IPv4Address("224.0.0.0")

BLOCKED_IPV6_EXACT = {"::1", "::"}
BLOCKED_IPV6_PREFIXES = ("fe80:", "fc", "fd", "ff")


def _is_private_ipv4(ip: ipaddress.IPv4Address) -> bool:
    if ip >= IPV4_MULTICAST_START:
        return True
    return any(ip in network for network in BLOCKED_IPV4_NETWORKS)


def _is_private_ipv6(ip: ipaddress.IPv6Address) -> bool:
    # Zone IDs ("::1%lo") only make sense on-link; never contact them.
    if ip.scope_id is not None:
        return True

    if ip.ipv4_mapped is not None:
        return _is_private_ipv4(ip.ipv4_mapped)

    # Prefix match on the compressed form, not full CIDR arithmetic.
    normalized = ip.compressed.lower()
    if normalized in BLOCKED_IPV6_EXACT:
        return True
    return normalized.startswith(BLOCKED_IPV6_PREFIXES)


def is_blocked_ip(ip: str) -> bool:
    """True if *ip* must never be contacted. Unparseable input is blocked."""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True

    if address.version == 4:
        return _is_private_ipv4(address)
    return _is_private_ipv6(address)


def resolve_host(hostname: str, timeout: float = None) -> list:
    """
    Returns every A and AAAA address for *hostname*. IP literals come back
    unchanged. Results are never cached: DNS may change between hops.
    """
    try:
        return [str(ipaddress.ip_address(hostname))]
    except ValueError:
        pass

    # Legacy IPv4 forms ("127.1", "0x7f000001", "2130706433") that the OS
    # resolver would still connect to.
    try:
        return [socket.inet_ntoa(socket.inet_aton(hostname))]
    except (OSError, ValueError):
        pass

    if timeout is None:
        timeout = config.DNS_TIMEOUT_SECONDS
    deadline = time.monotonic() + timeout

    try:
        resolver = dns.resolver.Resolver()
    except dns.resolver.NoResolverConfiguration as e:
        raise ResolutionFailed("No DNS resolver configured") from e

    addresses = []
    for rdtype in ("A", "AAAA"):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ResolutionFailed(f"DNS resolution timed out for {hostname}")
        try:
            answers = resolver.resolve(hostname, rdtype, lifetime=remaining)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            continue
        except dns.resolver.NoNameservers as e:
            raise ResolutionFailed(f"DNS resolution failed for {hostname}") from e
        except dns.exception.Timeout as e:
            raise ResolutionFailed(
                f"DNS resolution timed out for {hostname}"
            ) from e
        except (
            dns.exception.SyntaxError,
            dns.name.NameTooLong,
            dns.name.IDNAException,
        ) as e:
            raise InvalidUrl(
                f"Invalid hostname {hostname!r}: {e.__class__.__name__}",
                error="Malformed URL",
            ) from e
        except dns.exception.DNSException as e:
            raise ResolutionFailed(
                f"DNS resolution failed for {hostname}: {e.__class__.__name__}"
            ) from e
        addresses.extend(rdata.address for rdata in answers)

    return addresses


def validate_host(hostname: str) -> list:
    """Resolves *hostname* and raises if any address is private or reserved."""
    addresses = resolve_host(hostname)

    if not addresses:
        raise ResolutionFailed(f"DNS resolution failed for {hostname}")

    for address in addresses:
        if is_blocked_ip(address):
            logger.warning(f"Blocked {hostname}: resolves to {address}")
            raise BlockedDestination(address)

    return addresses


def effective_port(parsed) -> int:
    # .port raises ValueError for non-numeric or out-of-range ports
    port = parsed.port
    if port is None:
        return config.DEFAULT_PORTS[parsed.scheme]
    return port


def validate_endpoint(url: str, redirected: bool = False) -> None:
    """
    Checks protocol, port and resolved addresses of *url*. Protocol and port
    are checked before any DNS traffic.
    """
    try:
        parsed = urlsplit(url)
    except ValueError:
        raise InvalidUrl("Could not parse URL", error="Malformed URL")

    if parsed.scheme not in config.ALLOWED_SCHEMES:
        raise InvalidProtocol(
            "Only http:// and https:// are allowed",
            error="Redirect to invalid protocol" if redirected else None,
        )

    if not parsed.hostname:
        raise InvalidUrl("URL has no hostname", error="Malformed URL")
    if parsed.username is not None or parsed.password is not None:
        raise InvalidUrl("URL must not contain credentials", error="Malformed URL")

    try:
        port = effective_port(parsed)
    except ValueError:
        raise InvalidUrl("Could not parse URL port", error="Malformed URL")

    if port not in config.ALLOWED_PORTS:
        raise InvalidPort(
            "Only ports 80 and 443 are allowed",
            error="Redirect to invalid port" if redirected else None,
        )

    validate_host(parsed.hostname)
