import ipaddress

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from lambda_headers import fetcher, ssrf_guard


class FakeResponse:
    def __init__(self, status_code, headers=None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self.closed = False

    def close(self):
        self.closed = True


class FakeSession:
    """
    Stands in for requests.Session. *routes* maps a URL to (status, headers)
    or to an exception instance to raise.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.responses = []
        self.closed = False

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        route = self.routes.get(url)
        if route is None:
            raise AssertionError(f"Unexpected request to {url}")
        if isinstance(route, Exception):
            raise route
        status, headers = route
        response = FakeResponse(status, headers)
        self.responses.append(response)
        return response

    def close(self):
        self.closed = True

    @property
    def requested_urls(self):
        return [url for url, _ in self.calls]


@pytest.fixture
def dns_records(monkeypatch):
    """
    Hostname -> address list used in place of real DNS. Unknown hostnames
    resolve to nothing, IP literals to themselves. Every lookup is recorded
    in dns_records.lookups.
    """

    class Records(dict):
        pass

    records = Records()
    records.lookups = []

    def fake_resolve(hostname, timeout=None):
        records.lookups.append(hostname)
        try:
            return [str(ipaddress.ip_address(hostname))]
        except ValueError:
            pass
        return list(records.get(hostname, []))

    monkeypatch.setattr(ssrf_guard, "resolve_host", fake_resolve)
    return records


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def patched_session(monkeypatch, session):
    """Makes requests.Session() inside the fetcher return the fake session."""
    monkeypatch.setattr(fetcher.requests, "Session", lambda: session)
    return session


@pytest.fixture
def no_network(monkeypatch):
    """Fails the test if anything reaches the transport layer."""

    def explode(*args, **kwargs):
        raise AssertionError("network access attempted")

    monkeypatch.setattr(requests.Session, "get", explode)
    monkeypatch.setattr(ssrf_guard, "resolve_host", explode)
