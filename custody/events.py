"""
Append-only event log shared by every contract in one environment
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """One emitted event"""
    name: str
    emitter: str  # address of the emitting contract
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class EventLog:
    """Ordered record of events, rolled back together with contract state"""

    def __init__(self):
        self._events: List[Event] = []

    def emit(self, name: str, emitter: str, timestamp: int, **data) -> Event:
        event = Event(name=name, emitter=emitter, timestamp=timestamp, data=data)
        self._events.append(event)
        logger.debug("event %s from %s: %s", name, emitter, data)
        return event

    def all(self) -> List[Event]:
        return list(self._events)

    def filter(self, name: Optional[str] = None, emitter: Optional[str] = None) -> List[Event]:
        """Events matching name and/or emitter"""
        return [
            e for e in self._events
            if (name is None or e.name == name) and (emitter is None or e.emitter == emitter)
        ]

    def __len__(self) -> int:
        return len(self._events)

    def snapshot(self) -> int:
        return len(self._events)

    def restore(self, state: int) -> None:
        del self._events[state:]
