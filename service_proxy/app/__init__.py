"""
Proxy service package.

The proxy accepts a request carrying an absolute target URL in the ``url``
query parameter, relays method, headers and body to that URL, and relays the
response back. Successful GET responses are cached in memory.

Structure:
- app.main: FastAPI app, routes and rendering of relay results.
- app.relay: Relay engine orchestrating one proxied request.
- app.adapters: Outbound HTTP client.
- app.caching: In-memory response cache.
- app.domain: URL validation, header sanitization, content classification.
"""
