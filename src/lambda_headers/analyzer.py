from dataclasses import dataclass, field
from typing import Dict, List

from requests.structures import CaseInsensitiveDict

# Checked in this order; "missing" keeps it.
SECURITY_HEADERS = (
    "strict-transport-security",
    "content-security-policy",
    "x-frame-options",
    "x-content-type-options",
    "referrer-policy",
    "permissions-policy",
    "cross-origin-opener-policy",
    "cross-origin-embedder-policy",
    "cross-origin-resource-policy",
)


@dataclass
class SecurityHeaderVerdict:
    present: Dict[str, str] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"present": dict(self.present), "missing": list(self.missing)}


def analyze_security_headers(headers) -> SecurityHeaderVerdict:
    """
    Splits the checklist into headers the response sets (with their values)
    and headers it does not. Presence only; values are not graded.
    """
    if not isinstance(headers, CaseInsensitiveDict):
        headers = CaseInsensitiveDict(headers)

    verdict = SecurityHeaderVerdict()
    for name in SECURITY_HEADERS:
        value = headers.get(name)
        if value:
            verdict.present[name] = value
        else:
            verdict.missing.append(name)
    return verdict
