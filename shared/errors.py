"""
Shared error handling for the relay proxy.
"""

from typing import Dict, Any, Optional
from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ProxyError(Exception):
    """Base exception for proxy services."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class MissingTargetURL(ProxyError):
    """The caller omitted the target URL."""

    status_code = 400

    def __init__(self, message: str = "URL is required", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_TARGET_URL", message, details)


class InvalidTargetURL(ProxyError):
    """The target URL does not parse as an absolute HTTP(S) URL."""

    status_code = 400

    def __init__(self, url: str, message: str = "Invalid target URL", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_TARGET_URL", message, {"url": url, **(details or {})})


class RequestTooLarge(ProxyError):
    """Inbound request body exceeds the configured ceiling."""

    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(
            "REQUEST_TOO_LARGE",
            "Request body exceeds the proxy size limit",
            {"size": size, "limit": limit},
        )


class MalformedUpstreamBody(ProxyError):
    """Upstream declared JSON content that could not be parsed."""

    def __init__(self, message: str = "Upstream returned malformed JSON", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_UPSTREAM_BODY", message, details)


class UpstreamUnreachable(ProxyError):
    """No response could be obtained from the target (timeout, refused, DNS)."""

    status_code = 504

    def __init__(self, target: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "UPSTREAM_UNREACHABLE",
            f"Upstream unreachable: {reason}",
            {"target": target, **(details or {})},
        )


class InvalidUpstreamResponse(ProxyError):
    """The target answered with something that is not a usable HTTP response."""

    status_code = 502

    def __init__(self, target: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "INVALID_UPSTREAM_RESPONSE",
            f"Invalid upstream response: {reason}",
            {"target": target, **(details or {})},
        )


class SetupError(ProxyError):
    """Unexpected failure while building or issuing the outbound request."""

    status_code = 500

    def __init__(self, message: str = "Failed to issue upstream request", details: Optional[Dict[str, Any]] = None):
        super().__init__("SETUP_ERROR", message, details)
