"""
Target URL validation.
"""

import string
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from shared.errors import InvalidTargetURL

ALLOWED_SCHEMES = ("http", "https")

# Characters that can never appear in a registered name or IP literal
FORBIDDEN_HOST_CHARS = frozenset(string.whitespace + '<>"{}|\\^`')


@dataclass(frozen=True)
class TargetURL:
    """Parsed absolute URL the proxy relays to."""

    raw: str
    scheme: str
    host: str
    path: str

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"


def parse_target_url(raw: str) -> TargetURL:
    """Parse ``raw`` into a TargetURL or raise InvalidTargetURL."""
    candidate = raw.strip()

    try:
        parts = urlsplit(candidate)
        # Accessing .port validates the port component
        parts.port
    except ValueError as exc:
        raise InvalidTargetURL(raw, details={"reason": str(exc)}) from exc

    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidTargetURL(raw, details={"reason": "missing scheme"})
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidTargetURL(raw, details={"reason": f"unsupported scheme '{scheme}'"})
    if not parts.hostname:
        raise InvalidTargetURL(raw, details={"reason": "missing host"})

    # Host header value: hostname[:port], never the userinfo part
    host = parts.netloc.rpartition("@")[2]

    if FORBIDDEN_HOST_CHARS.intersection(host):
        raise InvalidTargetURL(raw, details={"reason": "invalid character in host"})
    if host.endswith(":"):
        raise InvalidTargetURL(raw, details={"reason": "empty port"})

    # The outbound client must accept the URL as well
    try:
        httpx.URL(candidate)
    except httpx.InvalidURL as exc:
        raise InvalidTargetURL(raw, details={"reason": str(exc)}) from exc

    return TargetURL(
        raw=candidate,
        scheme=scheme,
        host=host,
        path=parts.path or "/",
    )
