"""
Content classification of upstream response bodies.

Every relayed body is carried as a ``Payload``: a JSON value, a decoded text
string, or the raw bytes. The kind decides how the body is written back to the
caller and how it is held in the response cache.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from shared.errors import MalformedUpstreamBody


class PayloadKind(str, Enum):
    JSON = "json"
    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True)
class Payload:
    """Tagged response body."""

    kind: PayloadKind
    value: Any

    @classmethod
    def from_json(cls, value: Any) -> "Payload":
        return cls(PayloadKind.JSON, value)

    @classmethod
    def from_text(cls, value: str) -> "Payload":
        return cls(PayloadKind.TEXT, value)

    @classmethod
    def from_bytes(cls, value: bytes) -> "Payload":
        # bytes() detaches the payload from any caller-owned buffer
        return cls(PayloadKind.BINARY, bytes(value))

    def render(self) -> bytes:
        """Serialize the payload into the body written to the caller. Text is always UTF-8."""
        if self.kind is PayloadKind.JSON:
            return json.dumps(self.value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        if self.kind is PayloadKind.TEXT:
            return self.value.encode("utf-8")
        return self.value


def classify_content(content_type: Optional[str], content: bytes) -> Payload:
    """
    Classify an upstream body by its declared content type.

    Args:
        content_type: Value of the upstream ``content-type`` header, if any
        content: Transport-decoded body bytes

    Returns:
        Payload: JSON value, text, or binary payload

    Raises:
        MalformedUpstreamBody: JSON was declared but the body does not parse
    """
    declared = (content_type or "").lower()

    if "application/json" in declared:
        if not content:
            return Payload.from_text("")
        try:
            return Payload.from_json(json.loads(content.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedUpstreamBody(details={"reason": str(exc), "size": len(content)}) from exc

    if "text/" in declared:
        return Payload.from_text(_decode_text(content, declared_charset(content_type)))

    return Payload.from_bytes(content)


def declared_charset(content_type: Optional[str]) -> Optional[str]:
    """Return the ``charset`` parameter of a content type, if any."""
    for param in (content_type or "").split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"').lower()
    return None


def with_utf8_charset(content_type: str) -> str:
    """Rewrite the ``charset`` parameter of a text content type to utf-8."""
    media_type, *params = [part.strip() for part in content_type.split(";")]
    params = [param for param in params if param and not param.lower().startswith("charset")]
    return "; ".join([media_type, *params, "charset=utf-8"])


def _decode_text(content: bytes, charset: Optional[str]) -> str:
    try:
        return content.decode(charset or "utf-8", errors="replace")
    except LookupError:
        # Unknown charset label
        return content.decode("utf-8", errors="replace")
