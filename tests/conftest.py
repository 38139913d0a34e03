# tests/conftest.py
import asyncio
import json

import pytest
from starlette.websockets import WebSocketState

from dashboard.core.snapshot_store import SnapshotStore


@pytest.fixture
def store():
    """Small store so eviction is easy to reach"""
    return SnapshotStore(capacity=3)


@pytest.fixture
def make_snapshot():
    """Factory for producer payloads"""
    def _make(value=None, signal="NO TRADE", edge_up=None, edge_down=None, regime=None, **extra):
        payload = {"value": value, "signal": signal, "edge": {"edgeUp": edge_up, "edgeDown": edge_down}}
        if regime is not None:
            payload["regime"] = regime
        payload.update(extra)
        return payload
    return _make


class FakeWebSocket:
    """Stand-in for a Starlette WebSocket used by LiveChannel tests"""

    def __init__(self, fail_on_send: bool = False, block_on_send: bool = False):
        self.fail_on_send = fail_on_send
        self.block_on_send = block_on_send
        self.sent = []
        self.accepted = False
        self.close_code = None
        self.close_reason = None
        self.client = ("127.0.0.1", 50000)
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.inbound = asyncio.Queue()

    async def accept(self):
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, text: str):
        if self.fail_on_send:
            raise ConnectionResetError("connection reset by peer")
        if self.block_on_send:
            await asyncio.Event().wait()
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000, reason: str = ""):
        self.close_code = code
        self.close_reason = reason
        self.application_state = WebSocketState.DISCONNECTED

    async def receive(self):
        return await self.inbound.get()

    def push_text(self, text: str):
        self.inbound.put_nowait({"type": "websocket.receive", "text": text})

    def push_disconnect(self):
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": 1000})

    @property
    def closed(self) -> bool:
        return self.close_code is not None

    def types(self):
        return [m["type"] for m in self.sent]


@pytest.fixture
def fake_ws():
    return FakeWebSocket


async def drain(consumer, timeout: float = 1.0):
    """Wait until the consumer's sender task has flushed its queue"""
    await asyncio.wait_for(consumer.queue.join(), timeout)


async def wait_for_condition(predicate, timeout: float = 1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def drain_queue():
    return drain


@pytest.fixture
def wait_until():
    return wait_for_condition
