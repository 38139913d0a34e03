# dashboard/services/performance.py
"""
Aggregate statistics over the retained snapshot history.

The report is rebuilt from the store on every call; there are no running
counters to keep in step with appends.
"""
from typing import Dict, Iterable, Optional

from dashboard.core.models import Snapshot
from dashboard.core.snapshot_store import SnapshotStore
from dashboard.schemas.telemetry import PerformanceReport

BUY_UP = "BUY UP"
BUY_DOWN = "BUY DOWN"
NO_TRADE = "NO TRADE"

class _EdgeChannel:
    __slots__ = ("total", "count", "maximum")

    def __init__(self):
        self.total = 0.0
        self.count = 0
        self.maximum: Optional[float] = None

    def add(self, value: float):
        self.total += value
        self.count += 1
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    @property
    def average(self) -> Optional[float]:
        return self.total / self.count if self.count > 0 else None

def build_performance_report(snapshots: Iterable[Snapshot]) -> PerformanceReport:
    """Single pass over `snapshots`."""
    total = 0
    buy_up = buy_down = no_trade = 0
    positive = 0
    up, down = _EdgeChannel(), _EdgeChannel()
    regimes: Dict[str, int] = {}

    for snapshot in snapshots:
        total += 1

        signal = snapshot.signal
        if signal == BUY_UP:
            buy_up += 1
        elif signal == BUY_DOWN:
            buy_down += 1
        else:
            no_trade += 1

        for channel, value in ((up, snapshot.edge_up), (down, snapshot.edge_down)):
            if value is None:
                continue
            channel.add(value)
            if value > 0:
                positive += 1

        regime = snapshot.regime
        regimes[regime] = regimes.get(regime, 0) + 1

    return PerformanceReport(
        total_signals=total,
        buy_up_count=buy_up,
        buy_down_count=buy_down,
        no_trade_count=no_trade,
        average_edge_up=up.average,
        average_edge_down=down.average,
        max_edge_up=up.maximum,
        max_edge_down=down.maximum,
        positive_edge_count=positive,
        regime_distribution=regimes,
    )

class PerformanceAggregator:
    def __init__(self, store: SnapshotStore):
        self.store = store

    def report(self) -> PerformanceReport:
        return build_performance_report(self.store.all())
