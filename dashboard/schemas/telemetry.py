# dashboard/schemas/telemetry.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional

class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class PerformanceReport(CamelModel):
    total_signals: int = 0
    buy_up_count: int = 0
    buy_down_count: int = 0
    no_trade_count: int = 0
    average_edge_up: Optional[float] = None
    average_edge_down: Optional[float] = None
    max_edge_up: Optional[float] = None
    max_edge_down: Optional[float] = None
    positive_edge_count: int = 0
    regime_distribution: Dict[str, int] = {}

class StatusResponse(CamelModel):
    status: str = "running"
    uptime_ms: int
    uptime_formatted: str
    last_update: Optional[str] = None
    last_update_timestamp: Optional[int] = None
    buffer_size: int
    buffer_max_size: int
    buffer_utilization_percent: float
    connected_clients: int = 0

class HistoryPage(CamelModel):
    rows: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int
    has_more: bool
