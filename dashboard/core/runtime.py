# dashboard/core/runtime.py
from typing import Any

from dashboard.config import settings
from dashboard.core.snapshot_store import SnapshotStore
from dashboard.services.signals_log import SignalsLogReader
from dashboard.websocket.manager import LiveChannel

snapshot_store = SnapshotStore(settings.BUFFER_CAPACITY)
signals_log = SignalsLogReader(settings.SIGNALS_CSV_PATH)
live_channel = LiveChannel(snapshot_store)


live_channel.attach()


def publish(raw: Any) -> None:
    """Producer entry point, called once per trading tick."""
    snapshot_store.append(raw)
