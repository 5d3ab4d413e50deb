from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import pytest

from esikit import EsiProcessor, ProcessorConfig, RequestContext


@dataclass
class FakeResponse:
    status_code: int
    text: str
    reason: str = ""


@dataclass
class FakeSession:
    """In-memory HTTP client recording every request it serves."""

    routes: dict[str, FakeResponse | Exception] = field(default_factory=dict)
    calls: list[tuple[str, dict[str, str], float]] = field(default_factory=list)
    closed: bool = False

    def add(self, url: str, text: str, status: int = 200, reason: str = "") -> None:
        self.routes[url] = FakeResponse(status, text, reason)

    def fail(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def get(self, url: str, *, headers: Mapping[str, str], timeout: float) -> FakeResponse:
        self.calls.append((url, dict(headers), timeout))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, "", "Not Found")
        if isinstance(route, Exception):
            raise route
        return route

    def urls(self) -> list[str]:
        return [url for url, _headers, _timeout in self.calls]

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_processor(
    session: FakeSession, clock: FakeClock
) -> Callable[..., EsiProcessor]:
    def _factory(**settings: object) -> EsiProcessor:
        detector = settings.pop("failure_detector", None)
        config = ProcessorConfig.model_validate(settings)
        return EsiProcessor(config, session=session, clock=clock, failure_detector=detector)

    return _factory


@pytest.fixture
def request_context() -> RequestContext:
    return RequestContext.from_request(
        uri="/page",
        query_string="q=hello%20world&lang=fr",
        headers={
            "Host": "example.com",
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0) Chrome/120.0.0.0 Safari/537.36",
            "Cookie": "session=abc123; theme=dark",
            "Accept-Language": "en-US,fr;q=0.8",
        },
    )
