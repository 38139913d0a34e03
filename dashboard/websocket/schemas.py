import json
from typing import Any, Dict, Optional
from pydantic import BaseModel
from enum import Enum

from dashboard.utils.time import now_ms

class MessageType(str, Enum):
    """Message types on the push channel"""
    SNAPSHOT = "snapshot"    # full resync sent on connect
    UPDATE = "update"        # one newly appended snapshot
    PING = "ping"            # consumer -> server
    PONG = "pong"            # server -> consumer
    HEARTBEAT = "heartbeat"  # periodic keep-alive, server -> consumer

class ChannelMessage(BaseModel):
    type: MessageType
    data: Optional[Dict[str, Any]] = None
    timestamp: Optional[int] = None

    def to_json(self) -> str:
        message: Dict[str, Any] = {"type": self.type.value}
        if self.data is not None:
            message["data"] = self.data
        if self.timestamp is not None:
            message["timestamp"] = self.timestamp
        return json.dumps(message, default=str)

def snapshot_message(data: Dict[str, Any]) -> ChannelMessage:
    return ChannelMessage(type=MessageType.SNAPSHOT, data=data)

def update_message(data: Dict[str, Any]) -> ChannelMessage:
    return ChannelMessage(type=MessageType.UPDATE, data=data, timestamp=now_ms())

def pong_message() -> ChannelMessage:
    return ChannelMessage(type=MessageType.PONG, timestamp=now_ms())

def heartbeat_message() -> ChannelMessage:
    return ChannelMessage(type=MessageType.HEARTBEAT, timestamp=now_ms())
