"""
Domain helpers for the proxy service.

Pure functions and value types used by the relay engine: target URL
validation, header sanitization and response content classification.
"""

from .target_url import TargetURL, parse_target_url
from .headers import replace_header, sanitize_request_headers, sanitize_response_headers
from .content import Payload, PayloadKind, classify_content, declared_charset, with_utf8_charset

__all__ = [
    "TargetURL",
    "parse_target_url",
    "sanitize_request_headers",
    "sanitize_response_headers",
    "replace_header",
    "Payload",
    "PayloadKind",
    "classify_content",
    "declared_charset",
    "with_utf8_charset",
]
