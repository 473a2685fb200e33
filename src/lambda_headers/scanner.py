"""
Security headers scan: validate the input URL, walk its redirect chain under
SSRF protection and classify each hop's security headers.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlsplit

import requests

from . import config
from .analyzer import SecurityHeaderVerdict, analyze_security_headers
from .errors import InvalidUrl, TooManyRedirects
from .fetcher import HopRecord, follow_redirects

logger = logging.getLogger(__name__)


@dataclass
class ChainEntry:
    hop: HopRecord
    security_headers: SecurityHeaderVerdict

    def to_dict(self) -> dict:
        return {
            "url": self.hop.url,
            "status": self.hop.status,
            "location": self.hop.location,
            "security_headers": self.security_headers.to_dict(),
            "headers": self.hop.headers_dict(),
        }


@dataclass(frozen=True)
class Report:
    input: str
    final_url: str
    chain: List[ChainEntry] = field(default_factory=list)

    @property
    def redirects(self) -> int:
        return len(self.chain) - 1

    def to_dict(self) -> dict:
        return {
            "input": self.input,
            "final_url": self.final_url,
            "redirects": self.redirects,
            "chain": [entry.to_dict() for entry in self.chain],
        }


def validate_input_url(value) -> str:
    url = str(value or "").strip()

    if not url or len(url) > config.MAX_URL_LENGTH:
        raise InvalidUrl(f"URL must be 1-{config.MAX_URL_LENGTH} characters")

    try:
        parsed = urlsplit(url)
    except ValueError:
        raise InvalidUrl("Could not parse URL", error="Malformed URL")
    # Scheme and host are checked per hop by the SSRF guard. Without "//",
    # "example.com:443" would parse with "example.com" as its scheme.
    if not parsed.scheme or (not parsed.netloc and "//" not in url):
        raise InvalidUrl("Could not parse URL", error="Malformed URL")

    return url


def _analyze(hops: List[HopRecord]) -> List[ChainEntry]:
    return [ChainEntry(hop, analyze_security_headers(hop.headers)) for hop in hops]


def scan_headers(
    input_url: str, session: Optional[requests.Session] = None
) -> Report:
    """
    Runs a full scan and returns the Report. Any validation or transport
    failure aborts the whole scan; a too-long chain is reported with the hops
    collected so far attached to the error.
    """
    url = validate_input_url(input_url)

    try:
        chain = follow_redirects(url, session=session)
    except TooManyRedirects as e:
        e.chain = [entry.to_dict() for entry in _analyze(e.hops)]
        raise

    report = Report(input=url, final_url=chain.final_url, chain=_analyze(chain.hops))
    logger.info(
        f"Scanned {url}: final_url={report.final_url} redirects={report.redirects}"
    )
    return report
