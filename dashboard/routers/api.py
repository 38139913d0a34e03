# dashboard/routers/api.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from dashboard.core.snapshot_store import SnapshotStore
from dashboard.dependencies import get_aggregator, get_channel, get_signals_log, get_store
from dashboard.schemas.telemetry import HistoryPage, PerformanceReport, StatusResponse
from dashboard.services.history import clamp_pagination, paginate_history
from dashboard.services.performance import PerformanceAggregator
from dashboard.services.signals_log import SignalsLogError, SignalsLogReader
from dashboard.utils.time import format_uptime
from dashboard.websocket.manager import LiveChannel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["telemetry"])


@router.get("/status", response_model=StatusResponse)
async def get_status(
    store: SnapshotStore = Depends(get_store),
    channel: LiveChannel = Depends(get_channel),
):
    """Uptime, last update and buffer usage"""
    stats = store.stats()
    last = store.latest()

    return StatusResponse(
        status="running",
        uptime_ms=stats.uptime_ms,
        uptime_formatted=format_uptime(stats.uptime_ms),
        last_update=last.added_at if last else None,
        last_update_timestamp=stats.newest_timestamp,
        buffer_size=stats.count,
        buffer_max_size=stats.capacity,
        buffer_utilization_percent=round(stats.utilization, 2),
        connected_clients=channel.client_count,
    )


@router.get("/current")
async def get_current(store: SnapshotStore = Depends(get_store)):
    """Latest snapshot as produced by the bot"""
    snapshot = store.latest()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No data available yet")
    return snapshot.to_dict()


@router.get("/history", response_model=HistoryPage)
async def get_history(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    store: SnapshotStore = Depends(get_store),
):
    """Page through retained snapshots, counting back from the newest"""
    # raw strings so that bad values are defaulted instead of rejected
    limit_value, offset_value = clamp_pagination(limit, offset)
    return paginate_history(store, limit_value, offset_value)


@router.get("/history/csv", response_model=HistoryPage)
async def get_history_csv(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    signals_log: SignalsLogReader = Depends(get_signals_log),
):
    """Page through the append-only signals log on disk"""
    limit_value, offset_value = clamp_pagination(limit, offset)
    try:
        return signals_log.read_page(limit_value, offset_value)
    except SignalsLogError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to read CSV file", "message": str(e)},
        )


@router.get("/performance", response_model=PerformanceReport)
async def get_performance(aggregator: PerformanceAggregator = Depends(get_aggregator)):
    """Signal counts, edge averages and regime distribution over the history"""
    return aggregator.report()


@router.get("/clients")
async def get_clients(channel: LiveChannel = Depends(get_channel)):
    """Connected push-channel consumers"""
    return {
        "count": channel.client_count,
        "consumers": channel.get_consumers_info(),
    }
