"""Shared fakes: an in-process Ollama over httpx.MockTransport and a fake port table."""

import json
from collections.abc import Callable

import httpx
import pytest

import llamaprobe.scheduler


def ndjson(*events: dict) -> bytes:
    return b"".join(json.dumps(e).encode() + b"\n" for e in events)


def token_stream(tokens: list[str]) -> bytes:
    """A generate stream: one event per token, then the done event."""
    events = [{"response": t, "done": False} for t in tokens]
    events.append({"response": "", "done": True})
    return ndjson(*events)


class FakeClock:
    """Returns the given instants in order, then repeats the last one."""

    def __init__(self, *instants: float) -> None:
        self._instants = list(instants)
        self.calls = 0

    def __call__(self) -> float:
        self.calls += 1
        if len(self._instants) > 1:
            return self._instants.pop(0)
        return self._instants[0]


class FakeOllama:
    """Routes requests by host to canned catalogs and generate responses."""

    def __init__(
        self,
        catalogs: dict[str, list[str]],
        generate: Callable[[httpx.Request], httpx.Response] | None = None,
        banner: str = "Ollama is running",
    ) -> None:
        self.catalogs = catalogs
        self.generate = generate or (lambda request: httpx.Response(200, content=token_stream(["Hi", "!"])))
        self.banner = banner
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host not in self.catalogs:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/":
            return httpx.Response(200, text=self.banner)
        if request.url.path == "/api/tags":
            models = [{"name": n, "model": n} for n in self.catalogs[host]]
            return httpx.Response(200, json={"models": models})
        if request.url.path == "/api/generate":
            return self.generate(request)
        return httpx.Response(404, text="404 page not found")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), timeout=1.0)


@pytest.fixture
def open_ports(monkeypatch):
    """Replace the TCP check with a lookup in a mutable set of open addresses."""
    opened: set[str] = set()

    async def fake_check_port(address: str, port: int, timeout: float) -> bool:
        return address in opened

    monkeypatch.setattr(llamaprobe.scheduler, "check_port", fake_check_port)
    return opened
