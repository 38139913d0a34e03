# dashboard/server.py
"""
Embeddable dashboard server for the trading loop.

    server = DashboardServer()
    await server.start()
    ...
    server.publish(snapshot)   # once per tick
    ...
    await server.close()
"""
import asyncio
import errno
import logging
import socket
from typing import Any, Optional

import uvicorn

from dashboard.config import settings
from dashboard.core.snapshot_store import SnapshotStore
from dashboard.main import create_app
from dashboard.websocket.manager import LiveChannel

logger = logging.getLogger(__name__)


class DashboardServer:
    def __init__(
        self,
        store: SnapshotStore = None,
        host: str = None,
        port: int = None,
        heartbeat_interval: float = None,
    ):
        self.store = store if store is not None else SnapshotStore(settings.BUFFER_CAPACITY)
        self.host = host or settings.HOST
        self.port = settings.PORT if port is None else port

        self.channel = LiveChannel(self.store, heartbeat_interval=heartbeat_interval)
        self.channel.attach()
        self.app = create_app(store=self.store, channel=self.channel)

        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def client_count(self) -> int:
        return self.channel.client_count

    def publish(self, raw: Any) -> None:
        """Store one snapshot; connected viewers receive it as an update."""
        self.store.append(raw)

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                logger.error(f"[Web Server] Port {self.port} is already in use.")
                logger.error("Please set the PORT environment variable to a different port.")
            else:
                logger.error(f"[Web Server] Error: {e}")
            raise
        # port 0 asks the OS for a free port
        self.port = sock.getsockname()[1]
        return sock

    async def start(self):
        sock = self._bind()
        # protocol-level ping/pong is what detects dead viewers
        config = uvicorn.Config(
            self.app,
            log_config=None,
            ws_ping_interval=self.channel.heartbeat_interval,
            ws_ping_timeout=self.channel.heartbeat_interval,
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))

        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise RuntimeError(f"Dashboard server on {self.host}:{self.port} exited during startup")
            await asyncio.sleep(0.05)

        logger.info("=" * 60)
        logger.info(f"Web dashboard available at http://{self.host}:{self.port}")
        logger.info("=" * 60)

    async def close(self):
        """Close viewers, then stop accepting requests."""
        if self._server is None:
            return

        await self.channel.shutdown()
        self._server.should_exit = True
        try:
            await self._task
        except Exception as e:
            logger.error(f"[Web Server] Error during shutdown: {e}")
        finally:
            self.channel.detach()
            self._server = None
            self._task = None
