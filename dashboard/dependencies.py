from fastapi import Request

from dashboard.core.snapshot_store import SnapshotStore
from dashboard.services.performance import PerformanceAggregator
from dashboard.services.signals_log import SignalsLogReader
from dashboard.websocket.manager import LiveChannel

# Components are stored on app.state by create_app()

def get_store(request: Request) -> SnapshotStore:
    return request.app.state.store

def get_aggregator(request: Request) -> PerformanceAggregator:
    return request.app.state.aggregator

def get_channel(request: Request) -> LiveChannel:
    return request.app.state.channel

def get_signals_log(request: Request) -> SignalsLogReader:
    return request.app.state.signals_log
