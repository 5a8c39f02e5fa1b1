"""
HTTP relay proxy service.
"""

import time
from typing import Callable, Optional

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from .adapters.upstream_client import UpstreamClient
from .caching.cache_store import CacheStore
from .relay.engine import RelayEngine, RelayFailure, RelayResult

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class ProxyService(BaseService):
    """Forwarding proxy service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__("proxy", config)

        self.cache_store = CacheStore(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
            clock=clock or time.time,
            on_evict=self._record_eviction,
        )
        self.upstream_client = UpstreamClient(
            timeout=self.config.upstream_timeout_seconds,
            follow_redirects=self.config.follow_redirects,
            transport=upstream_transport,
        )
        self.relay_engine = RelayEngine(
            self.cache_store,
            self.upstream_client,
            metrics=self.metrics,
            max_body_bytes=self.config.max_request_body_bytes,
        )

        self._setup_proxy_routes()

        # Expose service instance via app state
        self.app.state.proxy_service = self

    async def _on_startup(self):
        await self.upstream_client.initialize()
        self.logger.info(
            "Proxy started",
            port=self.config.port,
            cache_ttl_seconds=self.config.cache_ttl_seconds,
            cache_max_entries=self.config.cache_max_entries,
        )

    async def _on_shutdown(self):
        await self.upstream_client.cleanup()
        self.logger.info("Proxy stopped", cache=self.cache_store.get_stats())

    def _record_eviction(self, key: str, reason: str):
        self.metrics.increment_counter("proxy_cache_evictions_total", reason=reason)

    def _setup_proxy_routes(self):
        """Set up proxy routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": self.service_name,
                "version": "1.0.0",
                "uptime_seconds": round(self.get_uptime(), 3),
            }

        @self.app.api_route("/proxy", methods=PROXY_METHODS)
        @self.app.api_route("/proxy/{path:path}", methods=PROXY_METHODS)
        async def proxy(request: Request):
            """Relay the request to the URL given in the ``url`` query parameter."""
            body = await request.body()
            result = await self.relay_engine.relay(
                method=request.method,
                target_url=request.query_params.get("url"),
                headers=request.headers,
                body=body,
            )
            return self._render(result)

        @self.app.get("/api/v1/cache/stats")
        async def get_cache_stats():
            """Get response cache statistics."""
            return self.cache_store.get_stats()

        @self.app.delete("/api/v1/cache")
        async def clear_cache():
            """Drop every cached response."""
            removed = self.cache_store.clear()
            return {"cleared": removed}

    def _render(self, result: RelayResult) -> Response:
        """Turn a relay result into the response written to the caller."""
        if isinstance(result, RelayFailure):
            return JSONResponse(
                status_code=result.status_code,
                content=result.error.to_response().model_dump(),
            )

        response = Response(content=result.render(), status_code=result.status_code)
        # Repeated upstream headers such as set-cookie stay separate
        for name, value in result.headers:
            response.headers.append(name, value)
        return response


def create_app(**kwargs):
    """Create FastAPI application."""
    service = ProxyService(**kwargs)
    return service.app


def main():
    service = ProxyService()
    # Upstream responses carry their own Server and Date headers
    service.run(server_header=False, date_header=False)


if __name__ == "__main__":
    main()
