"""
Coalescing recompute trigger.

Interaction events arrive in bursts (hover start / end pairs, rapid views).
Rather than re-profiling and re-classifying on every event, callers mark the
session dirty and read the current value; the value is recomputed at most
once per window, and only if something changed since the last computation.
"""

import threading
import time
from typing import Callable, Generic, Optional, TypeVar

from core.logging import LoggerMixin

T = TypeVar("T")


class RecomputeDebouncer(LoggerMixin, Generic[T]):
    """
    Lazily recompute a value at most once per ``window_seconds``.

    Usage:
        debouncer = RecomputeDebouncer(lambda: classify(log.events()), window_seconds=1.0)
        debouncer.mark_dirty()      # on each new event
        intent = debouncer.current()
    """

    def __init__(
        self,
        compute: Callable[[], T],
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._compute = compute
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._has_value = False
        self._dirty = True
        self._computing = False
        self._last_computed: Optional[float] = None
        self.recompute_count = 0

    def mark_dirty(self) -> None:
        with self._lock:
            self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def _claim_locked(self, due: bool) -> bool:
        """
        Whether this caller should recompute. While another caller is
        computing, readers get the stored value instead of waiting.
        """
        if not due or (self._computing and self._has_value):
            return False
        self._computing = True
        self._dirty = False
        return True

    def _recompute(self, now: float) -> T:
        # Runs outside the lock; events recorded meanwhile mark it dirty again.
        try:
            value = self._compute()
        except Exception:
            with self._lock:
                self._computing = False
                self._dirty = True
            raise
        with self._lock:
            self._value = value
            self._has_value = True
            self._computing = False
            self._last_computed = now
            self.recompute_count += 1
        return value

    def current(self) -> T:
        """
        The latest value. Recomputes when dirty and the window since the
        last computation has elapsed; otherwise returns the stored value.
        """
        now = self._clock()
        with self._lock:
            window_open = (
                self._last_computed is None
                or now - self._last_computed >= self._window_seconds
            )
            due = not self._has_value or (self._dirty and window_open)
            if not self._claim_locked(due):
                return self._value
        self.logger.debug("Debounced recompute", recompute_count=self.recompute_count + 1)
        return self._recompute(now)

    def flush(self) -> T:
        """Recompute now if dirty, ignoring the window."""
        now = self._clock()
        with self._lock:
            if not self._claim_locked(self._dirty or not self._has_value):
                return self._value
        return self._recompute(now)
