"""
Header sanitization for both directions of a relay.
"""

from typing import Dict, Iterable, List, Mapping, Tuple, Union

from .target_url import TargetURL

# Connection- and length-scoped request headers that must not cross the proxy
EXCLUDED_REQUEST_HEADERS = frozenset({"host", "content-length", "connection"})

# Framing of the upstream hop; the body is relayed already decoded
EXCLUDED_RESPONSE_HEADERS = frozenset({"content-encoding", "transfer-encoding", "content-length"})

HeaderSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]
HeaderList = List[Tuple[str, str]]


def _iter_headers(headers: HeaderSource) -> Iterable[Tuple[str, str]]:
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


def sanitize_request_headers(headers: HeaderSource, target: TargetURL) -> Dict[str, str]:
    """Copy inbound headers for the outbound request and pin Host to the target."""
    sanitized = {
        name.lower(): value
        for name, value in _iter_headers(headers)
        if name.lower() not in EXCLUDED_REQUEST_HEADERS
    }
    sanitized["host"] = target.host
    return sanitized


def sanitize_response_headers(headers: HeaderSource) -> HeaderList:
    """
    Copy upstream response headers, dropping encoding and framing headers.

    Repeated headers such as ``set-cookie`` stay separate entries, in order.
    """
    return [
        (name.lower(), value)
        for name, value in _iter_headers(headers)
        if name.lower() not in EXCLUDED_RESPONSE_HEADERS
    ]


def replace_header(headers: HeaderList, name: str, value: str) -> HeaderList:
    """Return ``headers`` with every ``name`` entry set to ``value``."""
    return [(key, value if key == name else current) for key, current in headers]
