"""
Append-only, session-local interaction log.

Events are immutable once recorded and never edited; the log is discarded
with its session. ``record_hover_end`` turns very short hovers into
``quick_bounce`` events, which the aggregator counts separately.
"""

import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Iterable, Optional, Tuple

from config.constants import DEFAULT_AGGREGATOR_CONFIG
from recs.models import InteractionEvent, InteractionKind, PageContext


def now_ms() -> float:
    return time.time() * 1000


class InteractionLog:
    """
    Thread-safe append-only event log for one session.

    Holds at most ``max_events`` events; the oldest are dropped first.

    Usage:
        log = InteractionLog()
        log.record(InteractionKind.VIEW, product_id="kit-1", context=PageContext.HOME)
        log.record_hover_end("kit-1", duration_ms=150)   # -> quick_bounce
        events = log.events()
    """

    def __init__(self, max_events: int = 1000):
        self._events: Deque[InteractionEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._version = 0

    def append(self, event: InteractionEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._version += 1

    def extend(self, events: Iterable[InteractionEvent]) -> int:
        """Append several events, returns how many were added."""
        added = 0
        with self._lock:
            for event in events:
                self._events.append(event)
                added += 1
            self._version += added
        return added

    def record(
        self,
        kind: InteractionKind,
        product_id: Optional[str] = None,
        context: Optional[PageContext] = None,
        duration_ms: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[float] = None,
    ) -> InteractionEvent:
        event = InteractionEvent(
            product_id=product_id,
            kind=kind,
            timestamp=now_ms() if timestamp is None else timestamp,
            duration_ms=duration_ms,
            context=context,
            metadata=metadata or {},
        )
        self.append(event)
        return event

    def record_hover_end(
        self,
        product_id: str,
        duration_ms: float,
        context: Optional[PageContext] = None,
        timestamp: Optional[float] = None,
    ) -> InteractionEvent:
        """Record a hover end, as quick_bounce when shorter than the bounce window."""
        kind = (
            InteractionKind.QUICK_BOUNCE
            if duration_ms < DEFAULT_AGGREGATOR_CONFIG.QUICK_BOUNCE_MAX_MS
            else InteractionKind.HOVER_END
        )
        return self.record(
            kind,
            product_id=product_id,
            context=context,
            duration_ms=duration_ms,
            timestamp=timestamp,
        )

    def events(self) -> Tuple[InteractionEvent, ...]:
        """Snapshot of the log in append order."""
        with self._lock:
            return tuple(self._events)

    @property
    def version(self) -> int:
        """Increases on every append; lets callers detect a changed log."""
        return self._version

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._version += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
