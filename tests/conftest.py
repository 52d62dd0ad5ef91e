import asyncio
from typing import Any, Dict

import httpx
import pytest
from fastapi import FastAPI, HTTPException

from api.client import CrawlerApiClient


class FakeConnection:
    """Transport WebSocket en mémoire : itérable asynchrone sur les frames reçues."""

    _CLOSE = object()

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def feed(self, *messages):
        for message in messages:
            self.queue.put_nowait(message)

    def drop(self):
        """Simule une fermeture côté serveur / réseau."""
        self.queue.put_nowait(self._CLOSE)

    def fail(self, exc: Exception):
        self.queue.put_nowait(exc)

    async def close(self):
        self.closed = True
        self.queue.put_nowait(self._CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.queue.get()
        if item is self._CLOSE:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


class FakeConnector:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []
        self.connections = []

    async def __call__(self, url: str):
        self.calls.append(url)
        if self.fail:
            raise ConnectionRefusedError("connection refused")
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class StubStream:
    """Flux sans transport : l'état de connexion est piloté par le test."""

    def __init__(self, connected=False):
        self.connected = connected
        self.connect_calls = 0
        self.disconnected = False

    def on_log(self, callback):
        self.log_callback = callback

    def on_status(self, callback):
        self.status_callback = callback

    def connect(self):
        self.connect_calls += 1

    def is_connected(self):
        return self.connected

    async def disconnect(self):
        self.disconnected = True


async def wait_for(predicate, timeout: float = 1.0):
    """Laisse tourner la boucle jusqu'à ce que `predicate()` soit vrai."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


def build_backend(state: Dict[str, Any]) -> FastAPI:
    """Faux backend du crawler exposant le plan de contrôle."""
    app = FastAPI()

    @app.get("/api/crawler/status")
    async def get_status():
        if state.get("status_error"):
            raise HTTPException(status_code=503, detail="Status unavailable")
        return {"status": state["status"]}

    @app.get("/api/crawler/logs")
    async def get_logs(limit: int = 100):
        if state.get("logs_error"):
            raise HTTPException(status_code=500)
        state["last_limit"] = limit
        return {"logs": state["logs"][-limit:]}

    @app.post("/api/crawler/start")
    async def start_crawler(config: Dict[str, Any]):
        if state["status"] == "running":
            raise HTTPException(status_code=400, detail="Crawler is already running")
        state["status"] = "running"
        state["last_config"] = config
        return {"status": "ok", "message": "Crawler started successfully"}

    @app.post("/api/crawler/stop")
    async def stop_crawler():
        if state["status"] != "running":
            raise HTTPException(status_code=400, detail="No crawler is running")
        state["status"] = "stopping"
        return {"status": "ok"}

    @app.get("/api/config/platforms")
    async def get_platforms():
        return {"platforms": [{"value": "xhs", "label": "Xiaohongshu"}]}

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


@pytest.fixture
def backend_state():
    return {"status": "idle", "logs": []}


@pytest.fixture
def backend(backend_state):
    return build_backend(backend_state)


@pytest.fixture
def asgi_transport(backend):
    return httpx.ASGITransport(app=backend)


@pytest.fixture
def api_client(asgi_transport):
    """Client HTTP branché directement sur le faux backend (pas de réseau)."""
    return CrawlerApiClient("http://testserver/api", transport=asgi_transport)


@pytest.fixture
def connector():
    return FakeConnector()
