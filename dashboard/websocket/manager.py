# dashboard/websocket/manager.py
"""
Live push channel for dashboard viewers.

Every consumer owns a bounded outgoing queue drained by its own sender task,
so a broadcast only enqueues and never waits on a socket. A consumer whose
queue overflows is disconnected instead of accumulating backlog.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from dashboard.config import settings
from dashboard.core.models import Snapshot
from dashboard.core.snapshot_store import SnapshotStore
from dashboard.utils.time import now_ms
from dashboard.websocket.schemas import (
    ChannelMessage,
    MessageType,
    heartbeat_message,
    pong_message,
    snapshot_message,
    update_message,
)

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT = 5.0

class ConsumerState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"

@dataclass(eq=False)
class Consumer:
    id: str
    websocket: WebSocket
    queue: asyncio.Queue
    state: ConsumerState = ConsumerState.CONNECTING
    is_alive: bool = True
    connected_at: int = field(default_factory=now_ms)
    last_activity: int = field(default_factory=now_ms)
    sender: Optional[asyncio.Task] = None

    def info(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "isAlive": self.is_alive,
            "connectedAt": self.connected_at,
            "lastActivity": self.last_activity,
            "queued": self.queue.qsize(),
        }

class LiveChannel:
    """Registry of connected consumers and fan-out of new snapshots."""

    def __init__(
        self,
        store: SnapshotStore,
        heartbeat_interval: float = None,
        send_queue_size: int = None,
    ):
        self.store = store
        self.heartbeat_interval = heartbeat_interval or settings.HEARTBEAT_INTERVAL
        self.send_queue_size = send_queue_size or settings.WS_SEND_QUEUE_SIZE
        self.consumers: Dict[str, Consumer] = {}
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client_count(self) -> int:
        return len(self.consumers)

    def get_consumers_info(self) -> List[Dict[str, Any]]:
        return [c.info() for c in self.consumers.values()]

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def attach(self):
        """Subscribe to store appends."""
        self.store.on_append(self.broadcast)

    def detach(self):
        self.store.remove_listener(self.broadcast)

    async def start(self):
        """Bind to the running loop and start the heartbeat."""
        self._loop = asyncio.get_running_loop()
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            logger.info(f"💓 Heartbeat started (every {self.heartbeat_interval}s)")

    async def shutdown(self):
        """Stop the heartbeat and close every consumer."""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        consumers = list(self.consumers.values())
        if consumers:
            await asyncio.gather(
                *(self.disconnect(c, code=1001, reason="Server shutting down") for c in consumers),
                return_exceptions=True,
            )

        for task in list(self._background):
            task.cancel()
        self._loop = None

        logger.info(f"🛑 Live channel stopped, closed {len(consumers)} consumer(s)")

    # ------------------------------------------------------------------
    # connections
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket) -> Consumer:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()

        consumer = Consumer(
            id=str(uuid4()),
            websocket=websocket,
            queue=asyncio.Queue(maxsize=self.send_queue_size),
        )

        # resync message goes in before the consumer can see any update
        current = self.store.latest()
        if current is not None:
            consumer.queue.put_nowait(snapshot_message(current.to_dict()).to_json())

        consumer.state = ConsumerState.OPEN
        self.consumers[consumer.id] = consumer
        consumer.sender = asyncio.create_task(self._sender(consumer))

        client = getattr(websocket, "client", None)
        logger.info(f"✅ Consumer {consumer.id} connected from {client} ({self.client_count} total)")
        return consumer

    async def disconnect(self, consumer: Consumer, code: int = 1000, reason: str = ""):
        """Remove `consumer` and close its socket. Safe to call twice."""
        if self._unregister(consumer):
            await self._close_socket(consumer, code, reason)

    def _unregister(self, consumer: Consumer) -> bool:
        consumer.state = ConsumerState.CLOSED
        if self.consumers.pop(consumer.id, None) is None:
            return False

        sender = consumer.sender
        if sender is not None and not sender.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if sender is not current:
                sender.cancel()

        logger.info(f"🔴 Consumer {consumer.id} disconnected ({self.client_count} remaining)")
        return True

    async def _close_socket(self, consumer: Consumer, code: int, reason: str):
        ws = consumer.websocket
        if ws.client_state == WebSocketState.DISCONNECTED or ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await asyncio.wait_for(ws.close(code=code, reason=reason), timeout=CLOSE_TIMEOUT)
        except Exception as e:
            logger.debug(f"Closing consumer {consumer.id} failed: {e}")

    def _schedule_disconnect(self, consumer: Consumer, code: int, reason: str):
        if not self._unregister(consumer):
            return
        task = asyncio.ensure_future(self._close_socket(consumer, code, reason))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def serve(self, websocket: WebSocket):
        """Run one consumer connection until it goes away."""
        consumer = await self.connect(websocket)
        try:
            while consumer.state is ConsumerState.OPEN:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None and message.get("bytes") is not None:
                    text = message["bytes"].decode("utf-8", errors="replace")
                self.handle_message(consumer, text)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error(f"❌ Consumer {consumer.id} connection error: {e}")
        finally:
            await self.disconnect(consumer)

    # ------------------------------------------------------------------
    # messages
    # ------------------------------------------------------------------

    def _enqueue(self, consumer: Consumer, message: str) -> bool:
        if consumer.state is not ConsumerState.OPEN:
            return False
        try:
            consumer.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.warning(f"⚠️ Consumer {consumer.id} fell {consumer.queue.qsize()} messages behind, disconnecting")
            self._schedule_disconnect(consumer, 1008, "Consumer too slow")
            return False

    def send(self, consumer: Consumer, message: ChannelMessage) -> bool:
        return self._enqueue(consumer, message.to_json())

    def handle_message(self, consumer: Consumer, text: Optional[str]):
        """Inbound frame: any frame confirms liveness, `ping` gets a `pong`."""
        consumer.is_alive = True
        consumer.last_activity = now_ms()

        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed message from {consumer.id}: {e}")
            return

        if not isinstance(data, dict):
            return

        if data.get("type") == MessageType.PING.value:
            self.send(consumer, pong_message())

    def broadcast(self, snapshot: Snapshot):
        """Push `snapshot` to every open consumer.

        Safe to call from the producer thread; the fan-out itself always runs
        on the channel's event loop.
        """
        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(self._fan_out, snapshot)
                return
        self._fan_out(snapshot)

    def _fan_out(self, snapshot: Snapshot):
        consumers = [c for c in self.consumers.values() if c.state is ConsumerState.OPEN]
        if not consumers:
            return

        # serialized once for all consumers
        message = update_message(snapshot.to_dict()).to_json()

        delivered = 0
        for consumer in consumers:
            if self._enqueue(consumer, message):
                delivered += 1

        if delivered < len(consumers):
            logger.info(f"Broadcast: {delivered} queued, {len(consumers) - delivered} dropped")

    async def _sender(self, consumer: Consumer):
        ws = consumer.websocket
        while True:
            message = await consumer.queue.get()
            try:
                await ws.send_text(message)
            except Exception as e:
                logger.warning(f"⚠️ Send to consumer {consumer.id} failed: {e}")
                if self._unregister(consumer):
                    await self._close_socket(consumer, 1011, "Send failed")
                return
            finally:
                consumer.queue.task_done()

    # ------------------------------------------------------------------
    # heartbeat
    # ------------------------------------------------------------------

    @staticmethod
    def _transport_gone(consumer: Consumer) -> bool:
        ws = consumer.websocket
        if ws.client_state == WebSocketState.DISCONNECTED:
            return True
        return consumer.sender is not None and consumer.sender.done()

    async def check_liveness(self):
        """Drop consumers whose transport is gone, send the heartbeat to the rest.

        Dead peers are detected by the server's protocol-level ping/pong,
        which every client answers without sending application frames. A
        consumer that only listens is never dropped here.
        """
        stale = []
        for consumer in list(self.consumers.values()):
            if self._transport_gone(consumer):
                consumer.is_alive = False
                stale.append(consumer)
                continue
            consumer.is_alive = True
            self.send(consumer, heartbeat_message())

        if stale:
            logger.warning(f"💀 Removing {len(stale)} consumer(s) with a closed transport")
            await asyncio.gather(
                *(self.disconnect(c, code=1001, reason="Heartbeat timeout") for c in stale),
                return_exceptions=True,
            )

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.check_liveness()
            except Exception:
                logger.exception("Heartbeat round failed")
