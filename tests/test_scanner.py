import pytest

from lambda_headers.analyzer import SECURITY_HEADERS
from lambda_headers.errors import (
    BlockedDestination,
    InvalidProtocol,
    InvalidUrl,
    ResolutionFailed,
    TooManyRedirects,
)
from lambda_headers.scanner import scan_headers, validate_input_url


class TestValidateInputUrl:
    def test_trims_whitespace(self):
        assert validate_input_url("  https://example.com \n") == "https://example.com"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty(self, value):
        with pytest.raises(InvalidUrl) as excinfo:
            validate_input_url(value)
        assert excinfo.value.error == "Invalid URL"

    def test_too_long(self):
        url = "https://example.com/" + "a" * 2048
        with pytest.raises(InvalidUrl):
            validate_input_url(url)

    def test_max_length_accepted(self):
        url = "https://example.com/"
        url += "a" * (2048 - len(url))
        assert validate_input_url(url) == url

    @pytest.mark.parametrize(
        "value",
        ["example.com", "/just/a/path", "http://[::1", "example.com:443", "http:example.com"],
    )
    def test_not_absolute(self, value):
        with pytest.raises(InvalidUrl) as excinfo:
            validate_input_url(value)
        assert excinfo.value.error == "Malformed URL"


class TestScanHeaders:
    def test_single_hop_report(self, dns_records, session):
        dns_records["example.com"] = ["93.184.216.34"]
        session.routes["http://example.com/"] = (
            200,
            {
                "Strict-Transport-Security": "max-age=63072000",
                "Content-Type": "text/html",
            },
        )

        report = scan_headers("http://example.com", session=session)

        assert report.redirects == 0
        assert report.final_url == "http://example.com/"
        verdict = report.chain[0].security_headers
        assert verdict.present["strict-transport-security"] == "max-age=63072000"
        assert "content-security-policy" in verdict.missing

    def test_report_dict_shape(self, dns_records, session):
        dns_records["example.com"] = ["93.184.216.34"]
        session.routes.update(
            {
                "http://example.com/": (301, {"Location": "https://example.com/"}),
                "https://example.com/": (200, {"X-Frame-Options": "SAMEORIGIN"}),
            }
        )

        body = scan_headers("http://example.com/", session=session).to_dict()

        assert list(body) == ["input", "final_url", "redirects", "chain"]
        assert body["input"] == "http://example.com/"
        assert body["final_url"] == "https://example.com/"
        assert body["redirects"] == 1
        first, second = body["chain"]
        assert first == {
            "url": "http://example.com/",
            "status": 301,
            "location": "https://example.com/",
            "security_headers": {"present": {}, "missing": list(SECURITY_HEADERS)},
            "headers": {"location": "https://example.com/"},
        }
        assert second["location"] is None
        assert second["security_headers"]["present"] == {
            "x-frame-options": "SAMEORIGIN"
        }
        assert second["headers"] == {"x-frame-options": "SAMEORIGIN"}

    def test_every_hop_partitions_checklist(self, dns_records, session):
        dns_records["example.com"] = ["93.184.216.34"]
        session.routes.update(
            {
                "https://example.com/a": (
                    302,
                    {"Location": "/b", "Referrer-Policy": "no-referrer"},
                ),
                "https://example.com/b": (
                    200,
                    {"Content-Security-Policy": "default-src 'self'"},
                ),
            }
        )

        report = scan_headers("https://example.com/a", session=session)

        for entry in report.chain:
            verdict = entry.security_headers
            assert len(verdict.present) + len(verdict.missing) == 9
            assert set(verdict.present).isdisjoint(verdict.missing)

    def test_repeat_scan_same_classification(self, dns_records, session):
        dns_records["example.com"] = ["93.184.216.34"]
        session.routes["https://example.com/"] = (
            200,
            {"X-Content-Type-Options": "nosniff"},
        )

        first = scan_headers("https://example.com/", session=session)
        second = scan_headers("https://example.com/", session=session)

        assert (
            first.chain[0].security_headers == second.chain[0].security_headers
        )

    def test_cloud_metadata_blocked_without_request(self, dns_records, session):
        with pytest.raises(BlockedDestination):
            scan_headers("http://169.254.169.254/", session=session)
        assert session.calls == []

    def test_ftp_rejected_before_dns(self, dns_records, session):
        with pytest.raises(InvalidProtocol):
            scan_headers("ftp://example.com", session=session)
        assert dns_records.lookups == []
        assert session.calls == []

    def test_open_redirect_to_private_ip_aborts(self, dns_records, session):
        dns_records["example.com"] = ["93.184.216.34"]
        session.routes["https://example.com/"] = (
            302,
            {"Location": "http://10.0.0.5/"},
        )

        with pytest.raises(BlockedDestination) as excinfo:
            scan_headers("https://example.com", session=session)

        assert excinfo.value.address == "10.0.0.5"
        assert session.requested_urls == ["https://example.com/"]

    def test_unresolvable_host(self, dns_records, session):
        with pytest.raises(ResolutionFailed):
            scan_headers("https://nxdomain.example/", session=session)
        assert session.calls == []

    def test_too_many_redirects_carries_analyzed_chain(self, dns_records, session):
        dns_records["example.com"] = ["93.184.216.34"]
        for i in range(8):
            session.routes[f"https://example.com/{i}"] = (
                302,
                {"Location": f"/{i + 1}", "X-Frame-Options": "DENY"},
            )

        with pytest.raises(TooManyRedirects) as excinfo:
            scan_headers("https://example.com/0", session=session)

        body = excinfo.value.to_body()
        assert body["error"] == "Too many redirects"
        assert len(body["chain"]) == 6
        assert body["chain"][0]["security_headers"]["present"] == {
            "x-frame-options": "DENY"
        }
        assert len(session.calls) == 6
