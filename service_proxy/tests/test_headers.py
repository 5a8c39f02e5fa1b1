"""
Unit tests for header sanitization.
"""

from service_proxy.app.domain.headers import (
    replace_header,
    sanitize_request_headers,
    sanitize_response_headers,
)
from service_proxy.app.domain.target_url import parse_target_url


class TestSanitizeRequestHeaders:
    """Test cases for sanitize_request_headers."""

    def test_strips_connection_scoped_headers(self):
        """Test that host, content-length and connection are never forwarded as received."""
        target = parse_target_url("https://api.example.com/data")
        headers = {
            "Host": "proxy.local:3000",
            "Content-Length": "42",
            "Connection": "keep-alive",
            "Accept": "application/json",
        }

        sanitized = sanitize_request_headers(headers, target)

        assert "content-length" not in sanitized
        assert "connection" not in sanitized
        assert sanitized["host"] == "api.example.com"
        assert sanitized["accept"] == "application/json"

    def test_host_is_set_when_missing(self):
        """Test that host is pinned to the target even without an inbound host."""
        target = parse_target_url("http://localhost:9000/")

        sanitized = sanitize_request_headers({}, target)

        assert sanitized == {"host": "localhost:9000"}

    def test_other_headers_pass_through(self):
        """Test that authorization and custom headers are preserved."""
        target = parse_target_url("https://api.example.com/")
        headers = [("Authorization", "Bearer token-1"), ("X-Custom-Header", "abc")]

        sanitized = sanitize_request_headers(headers, target)

        assert sanitized["authorization"] == "Bearer token-1"
        assert sanitized["x-custom-header"] == "abc"


class TestSanitizeResponseHeaders:
    """Test cases for sanitize_response_headers."""

    def test_strips_encoding_and_framing_headers(self):
        """Test that content-encoding, transfer-encoding and content-length are dropped."""
        headers = [
            ("Content-Type", "application/json"),
            ("Content-Encoding", "gzip"),
            ("Transfer-Encoding", "chunked"),
            ("Content-Length", "120"),
            ("Set-Cookie", "session=1"),
            ("Cache-Control", "no-cache"),
        ]

        sanitized = sanitize_response_headers(headers)

        assert sanitized == [
            ("content-type", "application/json"),
            ("set-cookie", "session=1"),
            ("cache-control", "no-cache"),
        ]

    def test_accepts_mapping(self):
        """Test sanitizing a plain mapping."""
        sanitized = sanitize_response_headers({"ETag": "\"v1\"", "content-length": "3"})

        assert sanitized == [("etag", "\"v1\"")]

    def test_repeated_headers_stay_separate(self):
        """Test that each set-cookie header is kept as its own entry."""
        headers = [
            ("Set-Cookie", "a=1; Expires=Wed, 21 Oct 2026 07:28:00 GMT"),
            ("Set-Cookie", "b=2"),
        ]

        sanitized = sanitize_response_headers(headers)

        assert sanitized == [
            ("set-cookie", "a=1; Expires=Wed, 21 Oct 2026 07:28:00 GMT"),
            ("set-cookie", "b=2"),
        ]


class TestReplaceHeader:
    """Test cases for replace_header."""

    def test_replaces_only_named_header(self):
        """Test that other headers and their order are untouched."""
        headers = [("content-type", "text/plain; charset=latin-1"), ("x-a", "1")]

        assert replace_header(headers, "content-type", "text/plain; charset=utf-8") == [
            ("content-type", "text/plain; charset=utf-8"),
            ("x-a", "1"),
        ]
