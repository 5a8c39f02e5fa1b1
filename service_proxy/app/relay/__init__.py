"""
Relay package: the orchestration of one proxied request.
"""

from .engine import RelayEngine, RelayFailure, RelayedResponse, RelayResult

__all__ = ["RelayEngine", "RelayFailure", "RelayedResponse", "RelayResult"]
