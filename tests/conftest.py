from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from multidict import CIMultiDict

Responder = Callable[[], Union[web.StreamResponse, Awaitable[web.StreamResponse]]]


@dataclass
class RecordedRequest:
    method: str
    path: str
    raw_path: str
    query: dict[str, str]
    headers: CIMultiDict[str]
    body: bytes


@dataclass
class FakeApi:
    """Scripted stand-in for the Allscreenshots API.

    Each (method, path) has a queue of responders; the last one repeats.
    """

    requests: list[RecordedRequest] = field(default_factory=list)
    _routes: dict[tuple[str, str], list[Responder]] = field(default_factory=dict)
    base_url: str = ""

    def on(self, method: str, path: str, *responders: Responder) -> None:
        self._routes[(method, path)] = list(responders)

    def calls(self, method: str, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method and r.path == path]

    async def handle(self, request: web.Request) -> web.StreamResponse:
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                raw_path=request.raw_path,
                query=dict(request.query),
                headers=request.headers.copy(),
                body=await request.read(),
            )
        )
        queue = self._routes.get((request.method, request.path))
        if not queue:
            return web.json_response({"message": "No such route"}, status=404)
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        response = responder()
        if inspect.isawaitable(response):
            response = await response
        return response


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    for name in (
        "ALLSCREENSHOTS_API_KEY",
        "ALLSCREENSHOTS_BASE_URL",
        "ALLSCREENSHOTS_TIMEOUT_MS",
        "ALLSCREENSHOTS_AUTO_RETRY",
        "ALLSCREENSHOTS_RETRY_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)


@pytest_asyncio.fixture
async def fake_api() -> Any:
    api = FakeApi()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", api.handle)
    server = TestServer(app)
    await server.start_server()
    api.base_url = str(server.make_url("/")).rstrip("/")
    try:
        yield api
    finally:
        await server.close()


class SleepRecorder:
    """Replacement for asyncio.sleep that records requested waits."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ScriptedOperation:
    """Async callable that raises or returns scripted results in order."""

    def __init__(self, *results: Any) -> None:
        self._results = list(results)
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
