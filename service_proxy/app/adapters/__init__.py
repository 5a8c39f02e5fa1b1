"""
Adapters package for the proxy service.

Contains the HTTP client wrapper used for outbound relay calls. The adapter
encapsulates connection pooling, timeouts and the mapping of transport
failures onto an explicit outcome type; it never raises for upstream
conditions.
"""

from .upstream_client import (
    OutboundRequest,
    Responded,
    SetupFailed,
    Unreachable,
    UpstreamClient,
    UpstreamOutcome,
)

__all__ = [
    "OutboundRequest",
    "Responded",
    "SetupFailed",
    "Unreachable",
    "UpstreamClient",
    "UpstreamOutcome",
]
