import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests
from requests.structures import CaseInsensitiveDict

from . import config
from .errors import InvalidUrl, Timeout, TooManyRedirects, UpstreamError
from .ssrf_guard import validate_endpoint

logger = logging.getLogger(__name__)


@dataclass
class HopRecord:
    """One request/response pair in a redirect chain."""

    url: str
    status: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    location: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400 and bool(self.location)

    def headers_dict(self) -> dict:
        return {name.lower(): value for name, value in self.headers.items()}


@dataclass
class RedirectChain:
    hops: List[HopRecord]
    final_url: str


def normalize_url(url: str) -> str:
    """
    Lower-cases the host, gives an empty path "/" and drops the fragment,
    which is never sent. Raises ValueError for unparseable URLs.
    """
    parsed = urlsplit(url)
    path = parsed.path
    if not path and parsed.netloc:
        path = "/"
    return urlunsplit(
        (parsed.scheme, parsed.netloc.lower(), path, parsed.query, "")
    )


def fetch_headers_once(session: requests.Session, url: str) -> HopRecord:
    """
    Issues a single GET without following redirects. The body is streamed and
    never read; the connection is released as soon as headers arrive.
    """
    try:
        response = session.get(
            url,
            allow_redirects=False,
            stream=True,
            timeout=(config.REQUEST_TIMEOUT_SECONDS, config.REQUEST_TIMEOUT_SECONDS),
            headers={"User-Agent": config.USER_AGENT, "Accept": "*/*"},
        )
    except requests.exceptions.Timeout as e:
        raise Timeout(f"Request to {url} timed out") from e
    except requests.exceptions.RequestException as e:
        raise UpstreamError(f"Failed to fetch {url}: {e.__class__.__name__}") from e

    try:
        headers = CaseInsensitiveDict(response.headers)
        return HopRecord(
            url=url,
            status=response.status_code,
            headers=headers,
            location=headers.get("location"),
        )
    finally:
        response.close()


def follow_redirects(
    url: str,
    session: Optional[requests.Session] = None,
    max_redirects: Optional[int] = None,
) -> RedirectChain:
    """
    Walks the redirect chain starting at *url*, validating every hop with the
    SSRF guard before it is requested. Hops are strictly sequential: the next
    destination is only known once the previous Location header is read.

    Raises TooManyRedirects (carrying the hops collected so far) when the
    chain is still redirecting after max_redirects redirects.
    """
    if max_redirects is None:
        max_redirects = config.MAX_REDIRECTS

    try:
        current_url = normalize_url(url)
    except ValueError:
        raise InvalidUrl("Could not parse URL", error="Malformed URL")

    own_session = session is None
    if own_session:
        session = requests.Session()

    hops = []
    try:
        for hop_index in range(max_redirects + 1):
            validate_endpoint(current_url, redirected=hop_index > 0)

            hop = fetch_headers_once(session, current_url)
            hops.append(hop)
            logger.info(f"Hop {hop_index}: {current_url} -> HTTP {hop.status}")

            if not hop.is_redirect:
                return RedirectChain(hops=hops, final_url=current_url)

            try:
                current_url = normalize_url(urljoin(current_url, hop.location))
            except ValueError:
                raise InvalidUrl(
                    f"Could not parse redirect Location: {hop.location}",
                    error="Malformed URL",
                )
    finally:
        if own_session:
            session.close()

    raise TooManyRedirects(
        f"Exceeded maximum of {max_redirects} redirects", hops=hops
    )
