# dashboard/core/models.py
import copy
import math
from dataclasses import dataclass, field
from numbers import Real
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

EMPTY_PAYLOAD: Mapping[str, Any] = MappingProxyType({})

def _finite_number(value: Any) -> Optional[float]:
    """Return `value` as float when it is a finite real number, else None."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    value = float(value)
    return value if math.isfinite(value) else None

def json_safe(value: Any) -> Any:
    """Copy `value` with non-finite floats replaced by None."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Mapping):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value

def freeze(value: Any) -> Any:
    """Read-only copy: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(v) for v in value)
    return copy.deepcopy(value)

def normalize_payload(raw: Any) -> Mapping[str, Any]:
    """Turn producer input into a private read-only copy."""
    if raw is None:
        return EMPTY_PAYLOAD
    if hasattr(raw, "model_dump"):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        return EMPTY_PAYLOAD
    return freeze(raw)

@dataclass(frozen=True)
class Snapshot:
    """One tick of bot state as retained by the store.

    `payload` is a read-only view all the way down; `to_dict()` hands out a
    plain mutable copy for serialization.
    """
    timestamp: int
    added_at: str
    payload: Mapping[str, Any] = field(default_factory=lambda: EMPTY_PAYLOAD, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = json_safe(self.payload)
        data["timestamp"] = self.timestamp
        data["_addedAt"] = self.added_at
        return data

    @property
    def signal(self) -> Optional[str]:
        return self.payload.get("signal")

    def _edge(self, key: str) -> Optional[float]:
        edge = self.payload.get("edge")
        if not isinstance(edge, Mapping):
            return None
        return _finite_number(edge.get(key))

    @property
    def edge_up(self) -> Optional[float]:
        return self._edge("edgeUp")

    @property
    def edge_down(self) -> Optional[float]:
        return self._edge("edgeDown")

    @property
    def regime(self) -> str:
        regime = self.payload.get("regime")
        if not regime:
            info = self.payload.get("regimeInfo")
            if isinstance(info, Mapping):
                regime = info.get("regime")
        return str(regime) if regime else "UNKNOWN"

@dataclass(frozen=True)
class StoreStats:
    count: int
    capacity: int
    utilization: float
    uptime_ms: int
    oldest_timestamp: Optional[int] = None
    newest_timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "maxSize": self.capacity,
            "utilization": self.utilization,
            "uptimeMs": self.uptime_ms,
            "oldestTimestamp": self.oldest_timestamp,
            "newestTimestamp": self.newest_timestamp,
        }
