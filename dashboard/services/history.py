# dashboard/services/history.py
from typing import Any, Optional, Tuple

from dashboard.config import settings
from dashboard.core.snapshot_store import SnapshotStore
from dashboard.schemas.telemetry import HistoryPage

def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None

def clamp_pagination(
    limit: Any,
    offset: Any,
    default_limit: int = None,
    max_limit: int = None,
) -> Tuple[int, int]:
    """Parse raw `limit`/`offset` values.

    Missing, non-numeric or non-positive limits fall back to the default and
    the result is capped at `max_limit`. Offsets below zero become zero.
    """
    default_limit = settings.HISTORY_DEFAULT_LIMIT if default_limit is None else default_limit
    max_limit = settings.HISTORY_MAX_LIMIT if max_limit is None else max_limit

    parsed_limit = _to_int(limit)
    if parsed_limit is None or parsed_limit <= 0:
        parsed_limit = default_limit
    parsed_limit = min(parsed_limit, max_limit)

    parsed_offset = _to_int(offset)
    if parsed_offset is None or parsed_offset < 0:
        parsed_offset = 0

    return parsed_limit, parsed_offset

def paginate_history(store: SnapshotStore, limit: int, offset: int) -> HistoryPage:
    snapshots, total = store.page(limit, offset)

    return HistoryPage(
        rows=[snapshot.to_dict() for snapshot in snapshots],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )
