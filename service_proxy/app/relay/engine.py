"""
Relay engine: validates, serves from cache, forwards and classifies.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Mapping, Optional, Tuple, Union

from shared.errors import (
    InvalidUpstreamResponse,
    MalformedUpstreamBody,
    MissingTargetURL,
    ProxyError,
    RequestTooLarge,
    SetupError,
    UpstreamUnreachable,
)
from shared.logging import get_logger, set_target_host
from shared.tracing import trace_operation
from ..adapters.upstream_client import OutboundRequest, Responded, SetupFailed, Unreachable, UpstreamClient
from ..caching.cache_store import CacheStore, make_cache_key
from ..domain.content import Payload, PayloadKind, classify_content, with_utf8_charset
from ..domain.headers import replace_header, sanitize_request_headers, sanitize_response_headers
from ..domain.target_url import TargetURL, parse_target_url

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
CACHEABLE_METHOD = "GET"


@dataclass(frozen=True)
class RelayedResponse:
    """Upstream response (live or cached) ready to be written to the caller."""

    status_code: int
    headers: List[Tuple[str, str]]
    payload: Payload
    from_cache: bool = False

    def render(self) -> bytes:
        return self.payload.render()


@dataclass(frozen=True)
class RelayFailure:
    """Classified failure; no upstream response is relayed."""

    error: ProxyError

    @property
    def status_code(self) -> int:
        return self.error.status_code


RelayResult = Union[RelayedResponse, RelayFailure]


class RelayEngine:
    """Relays one inbound proxy request per call to ``relay``."""

    def __init__(
        self,
        cache_store: CacheStore,
        upstream_client: UpstreamClient,
        metrics: Optional["MetricsCollector"] = None,
        max_body_bytes: Optional[int] = None,
    ):
        self.cache_store = cache_store
        self.max_body_bytes = max_body_bytes
        self.upstream_client = upstream_client
        self.metrics = metrics
        self.logger = get_logger("proxy.relay_engine")

    async def relay(
        self,
        method: str,
        target_url: Optional[str],
        headers: Mapping[str, str],
        body: bytes = b"",
    ) -> RelayResult:
        """
        Relay a request to ``target_url``.

        GET responses with a 2xx status are cached; a fresh cached entry is
        returned without contacting the target. Never raises: every failure
        comes back as a RelayFailure. The URL is checked before the body size.
        """
        method = method.upper()

        if not target_url or not target_url.strip():
            return self._fail(MissingTargetURL())

        try:
            target = parse_target_url(target_url)
        except ProxyError as exc:
            return self._fail(exc)

        set_target_host(target.host)

        if self.max_body_bytes is not None and len(body) > self.max_body_bytes:
            return self._fail(RequestTooLarge(len(body), self.max_body_bytes))

        cache_key = None
        if method == CACHEABLE_METHOD:
            cache_key = make_cache_key(method, target_url, body)
            entry = self.cache_store.lookup(cache_key)
            if entry is not None:
                self._count("proxy_cache_hits_total")
                self.logger.debug("Cache hit", method=method, url=target.raw)
                return RelayedResponse(
                    status_code=entry.status_code,
                    headers=entry.headers,
                    payload=entry.payload,
                    from_cache=True,
                )
            self._count("proxy_cache_misses_total")

        # The outbound call and cache write finish even if the caller goes away
        return await asyncio.shield(self._forward(method, target, headers, body, cache_key))

    async def _forward(
        self,
        method: str,
        target: TargetURL,
        headers: Mapping[str, str],
        body: bytes,
        cache_key: Optional[str],
    ) -> RelayResult:
        try:
            with trace_operation("proxy.relay", **{"http.method": method, "proxy.target_host": target.host}) as span:
                result = await self._exchange(method, target, headers, body, cache_key)
                span.set_attribute("http.status_code", result.status_code)
                return result
        except Exception as exc:
            self.logger.error("Relay failed unexpectedly", url=target.raw, error=str(exc), exc_info=True)
            return self._fail(SetupError(details={"reason": str(exc) or exc.__class__.__name__}))

    async def _exchange(
        self,
        method: str,
        target: TargetURL,
        headers: Mapping[str, str],
        body: bytes,
        cache_key: Optional[str],
    ) -> RelayResult:
        outbound = OutboundRequest(
            method=method,
            url=target.raw,
            headers=sanitize_request_headers(headers, target),
            body=body if method in BODY_METHODS else None,
        )

        start = time.perf_counter()
        outcome = await self.upstream_client.send(outbound)
        duration = time.perf_counter() - start
        if self.metrics:
            self.metrics.observe_histogram("proxy_upstream_duration_seconds", duration, method=method)

        if isinstance(outcome, Unreachable):
            self._count("proxy_upstream_requests_total", method=method, outcome=outcome.kind)
            if outcome.kind == "protocol":
                return self._fail(InvalidUpstreamResponse(target.raw, outcome.reason))
            return self._fail(UpstreamUnreachable(target.raw, outcome.reason, {"kind": outcome.kind}))

        if isinstance(outcome, SetupFailed):
            self._count("proxy_upstream_requests_total", method=method, outcome="setup_failed")
            return self._fail(SetupError(details={"reason": outcome.reason, "target": target.raw}))

        self._count("proxy_upstream_requests_total", method=method, outcome="responded")
        return self._relay_response(method, target, outcome, cache_key)

    def _relay_response(
        self,
        method: str,
        target: TargetURL,
        outcome: Responded,
        cache_key: Optional[str],
    ) -> RelayedResponse:
        response_headers = sanitize_response_headers(outcome.headers)

        degraded = False
        try:
            payload = classify_content(outcome.content_type, outcome.content)
        except MalformedUpstreamBody as exc:
            degraded = True
            self.logger.warning(
                "Upstream body declared JSON but did not parse",
                url=target.raw,
                status_code=outcome.status_code,
                details=exc.details,
            )
            payload = Payload.from_json({"code": exc.code, "message": exc.message})

        if payload.kind is PayloadKind.TEXT and outcome.content_type:
            # Text is re-encoded as UTF-8 on the way out
            response_headers = replace_header(
                response_headers, "content-type", with_utf8_charset(outcome.content_type)
            )

        self.logger.info(
            "Relayed upstream response",
            method=method,
            url=target.raw,
            status_code=outcome.status_code,
            payload_kind=payload.kind.value,
        )

        if cache_key is not None and 200 <= outcome.status_code < 300 and not degraded:
            self.cache_store.insert(
                cache_key,
                self.cache_store.new_entry(payload, outcome.status_code, response_headers),
            )

        return RelayedResponse(
            status_code=outcome.status_code,
            headers=response_headers,
            payload=payload,
        )

    def _fail(self, error: ProxyError) -> RelayFailure:
        self.logger.warning(
            "Relay failed",
            code=error.code,
            message=error.message,
            status_code=error.status_code,
            details=error.details,
        )
        if self.metrics:
            self.metrics.record_error(error.code)
        return RelayFailure(error)

    def _count(self, metric_name: str, **labels):
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
