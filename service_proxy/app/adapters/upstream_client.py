"""
Outbound HTTP client for relayed requests.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import httpx

from shared.logging import get_logger

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class OutboundRequest:
    """Request issued to the target on behalf of the caller."""

    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[bytes] = None


@dataclass(frozen=True)
class Responded:
    """The target answered with a status, headers and a (decoded) body."""

    status_code: int
    headers: List[Tuple[str, str]]
    content: bytes

    @property
    def content_type(self) -> Optional[str]:
        for name, value in self.headers:
            if name.lower() == "content-type":
                return value
        return None


@dataclass(frozen=True)
class Unreachable:
    """No response could be obtained. ``kind`` is timeout, connect or protocol."""

    kind: str
    reason: str


@dataclass(frozen=True)
class SetupFailed:
    """The request could not be built or issued."""

    reason: str


UpstreamOutcome = Union[Responded, Unreachable, SetupFailed]


class UpstreamClient:
    """Pooled httpx client that reports every call as an UpstreamOutcome."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.transport = transport
        self.logger = get_logger("proxy.upstream_client")
        self.client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Create the shared connection pool on first use."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=self.follow_redirects,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                transport=self.transport,
            )
            # Connection is hop-by-hop and is not relayed in either direction
            self.client.headers.pop("connection", None)

    async def cleanup(self):
        """Close the connection pool."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def send(self, outbound: OutboundRequest) -> UpstreamOutcome:
        """Issue ``outbound``; non-2xx statuses are ordinary responses, not errors."""
        await self.initialize()

        try:
            response = await asyncio.wait_for(
                self.client.request(
                    outbound.method,
                    outbound.url,
                    headers=outbound.headers,
                    content=outbound.body,
                ),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            self.logger.warning("Upstream timed out", url=outbound.url, timeout=self.timeout)
            return Unreachable("timeout", str(exc) or f"no response within {self.timeout:g}s")
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.LocalProtocolError) as exc:
            self.logger.error("Upstream request could not be built", url=outbound.url, error=str(exc))
            return SetupFailed(str(exc))
        except httpx.ConnectError as exc:
            self.logger.warning("Upstream connection failed", url=outbound.url, error=str(exc))
            return Unreachable("connect", str(exc) or "connection failed")
        except (httpx.RemoteProtocolError, httpx.DecodingError, httpx.TooManyRedirects) as exc:
            self.logger.warning("Upstream sent an unusable response", url=outbound.url, error=str(exc))
            return Unreachable("protocol", str(exc) or exc.__class__.__name__)
        except httpx.TransportError as exc:
            self.logger.warning("Upstream transport error", url=outbound.url, error=str(exc))
            return Unreachable("connect", str(exc) or exc.__class__.__name__)
        except Exception as exc:
            self.logger.error("Upstream request failed", url=outbound.url, error=str(exc), exc_info=True)
            return SetupFailed(str(exc) or exc.__class__.__name__)

        return Responded(
            status_code=response.status_code,
            headers=response.headers.multi_items(),
            content=response.content,
        )
