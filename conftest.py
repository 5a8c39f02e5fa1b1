"""
Shared fixtures for relay proxy tests.
"""

from typing import Callable, Dict, List, Optional, Tuple, Type, Union

import httpx
import pytest


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


Route = Union[Tuple[int, Dict], Callable[[httpx.Request], httpx.Response]]


class FakeUpstream:
    """Scripted target server served through httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, Route] = {}
        self.failure: Optional[Tuple[Type[Exception], str]] = None

    def route(self, path: str, status_code: int = 200, **response_kwargs):
        """Answer ``path`` with a fresh httpx.Response built from the arguments."""
        self.routes[path] = (status_code, response_kwargs)

    def route_handler(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler

    def fail_with(self, exc_type: Type[Exception], message: str):
        """Raise ``exc_type`` for every request instead of answering."""
        self.failure = (exc_type, message)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.failure is not None:
            exc_type, message = self.failure
            if issubclass(exc_type, httpx.RequestError):
                raise exc_type(message, request=request)
            raise exc_type(message)

        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        status_code, response_kwargs = route
        return httpx.Response(status_code, **response_kwargs)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def upstream():
    """Scripted upstream target."""
    return FakeUpstream()
