"""Error kinds raised while scanning a URL.

Each kind carries the HTTP status and the short error title the API returns,
so the handler can turn any of them into a response without a lookup table.
"""


class ScanError(Exception):
    status_code = 500
    error = "Headers scan failed"

    def __init__(self, details: str, error: str = None):
        super().__init__(details)
        self.details = details
        if error:
            self.error = error

    def to_body(self) -> dict:
        return {"error": self.error, "details": self.details}


class InvalidUrl(ScanError):
    status_code = 400
    error = "Invalid URL"


class InvalidProtocol(ScanError):
    status_code = 400
    error = "Invalid protocol"


class InvalidPort(ScanError):
    status_code = 400
    error = "Invalid port"


class BlockedDestination(ScanError):
    """A resolved address falls in a private or reserved range."""

    def __init__(self, address: str):
        super().__init__(f"Blocked destination: {address} (private/reserved IP)")
        self.address = address


class ResolutionFailed(ScanError):
    pass


class TooManyRedirects(ScanError):
    status_code = 400
    error = "Too many redirects"

    def __init__(self, details: str, hops: list = None):
        super().__init__(details)
        self.hops = hops or []
        # Filled in by the scanner with analyzed chain entries.
        self.chain = []

    def to_body(self) -> dict:
        body = super().to_body()
        body["chain"] = self.chain
        return body


class Timeout(ScanError):
    pass


class UpstreamError(ScanError):
    """Transport failure talking to the target (connection refused, TLS, ...)."""
