"""Events flowing into the workspace controller.

Input (keys, resizes) and the completions of background jobs share one event
type so that the terminal loop can feed them to the controller in arrival
order from a single queue.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EventType(Enum):
    """Types of events the controller reacts to."""
    KEY = "key"
    RESIZE = "resize"
    CONNECT_SUCCESS = "connect_success"
    CONNECT_ERROR = "connect_error"
    SCHEMAS_LOADED = "schemas_loaded"
    QUERY_FINISHED = "query_finished"
    CLIPBOARD_READ = "clipboard_read"
    EXPORT_FINISHED = "export_finished"


@dataclass
class Event:
    """Represents an event in the system."""
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


def key_event(key: str) -> Event:
    return Event(EventType.KEY, {"key": key}, source="terminal")


def resize_event(width: int, height: int) -> Event:
    return Event(EventType.RESIZE, {"width": width, "height": height}, source="terminal")
