"""
Session manager for in-memory session state.

Each storefront session owns its interaction log, its ranking cache and a
debounced behavior analysis. Nothing outlives the session: state is dropped
on explicit delete or once the session has been idle longer than its TTL.
Expired sessions are swept when new sessions are created, at most once per
sweep interval.

In production, this should be backed by Redis for horizontal scaling.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Sequence, Tuple

from config.settings import Settings, get_settings
from core.logging import LoggerMixin
from recs.behavior import BehaviorClassifier, aggregate_behavior
from recs.debounce import RecomputeDebouncer
from recs.interaction_log import InteractionLog
from recs.models import BehaviorProfile, IntentClassification, InteractionEvent
from recs.pipeline import get_pipeline
from recs.ranking_cache import RankingCache


Analysis = Tuple[BehaviorProfile, IntentClassification]
Analyzer = Callable[[Sequence[InteractionEvent]], Analysis]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rule_based_analyzer(events: Sequence[InteractionEvent]) -> Analysis:
    """Profile plus rule-table classification, no remote providers."""
    profile = aggregate_behavior(events)
    return profile, BehaviorClassifier().classify(profile)


@dataclass
class SessionContext:
    """Everything one session owns."""

    session_id: str
    log: InteractionLog
    cache: RankingCache
    analysis: RecomputeDebouncer
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    ttl_seconds: int = 86400

    def is_expired(self) -> bool:
        """Idle for longer than the TTL."""
        return _utcnow() > self.updated_at + timedelta(seconds=self.ttl_seconds)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def record(self, events: Sequence[InteractionEvent]) -> int:
        """Append events and mark the analysis stale. The ranking cache is left alone."""
        added = self.log.extend(events)
        if added:
            self.analysis.mark_dirty()
        self.touch()
        return added

    def current_analysis(self) -> Analysis:
        return self.analysis.current()

    def refresh(self) -> int:
        """Drop cached rankings so the next page load recomputes."""
        self.touch()
        return self.cache.invalidate()


class SessionManager(LoggerMixin):
    """
    Thread-safe in-memory session manager.

    Usage:
        manager = SessionManager()

        session = manager.get_or_create("sess_123")
        session.record(events)
        profile, intent = session.current_analysis()

        manager.delete_session("sess_123")
    """

    def __init__(
        self,
        ttl_seconds: int = 86400,
        cache_ttl_seconds: float = 300.0,
        cache_max_entries: int = 256,
        debounce_seconds: float = 1.0,
        analyzer: Optional[Analyzer] = None,
        sweep_interval_seconds: float = 300.0,
    ):
        """
        Initialize session manager.

        Args:
            ttl_seconds: Idle session TTL in seconds (default 24 hours)
            cache_ttl_seconds: Ranking cache TTL per session
            cache_max_entries: Ranking cache size per session
            debounce_seconds: Behavior recompute window
            analyzer: events -> (profile, classification); rules only by default
            sweep_interval_seconds: Minimum time between expired-session sweeps
        """
        self._ttl_seconds = ttl_seconds
        self._cache_ttl_seconds = cache_ttl_seconds
        self._cache_max_entries = cache_max_entries
        self._debounce_seconds = debounce_seconds
        self._analyzer: Analyzer = analyzer or rule_based_analyzer
        self._lock = threading.RLock()
        self._sessions: Dict[str, SessionContext] = {}
        self._sweep_interval = timedelta(seconds=sweep_interval_seconds)
        self._last_sweep = _utcnow()

    @classmethod
    def from_settings(
        cls, settings: Settings, analyzer: Optional[Analyzer] = None
    ) -> "SessionManager":
        return cls(
            ttl_seconds=settings.session_ttl_seconds,
            cache_ttl_seconds=settings.ranking_cache_ttl_seconds,
            cache_max_entries=settings.ranking_cache_max_entries,
            debounce_seconds=settings.recompute_debounce_seconds,
            analyzer=analyzer,
            sweep_interval_seconds=settings.session_sweep_interval_seconds,
        )

    def _new_session(self, session_id: str) -> SessionContext:
        log = InteractionLog()
        analyzer = self._analyzer
        return SessionContext(
            session_id=session_id,
            log=log,
            cache=RankingCache(
                ttl_seconds=self._cache_ttl_seconds,
                max_entries=self._cache_max_entries,
            ),
            analysis=RecomputeDebouncer(
                lambda: analyzer(log.events()),
                window_seconds=self._debounce_seconds,
            ),
            ttl_seconds=self._ttl_seconds,
        )

    # =========================================================================
    # Session Access
    # =========================================================================

    def get_session(self, session_id: str) -> Optional[SessionContext]:
        """
        Get a live session.

        Returns:
            SessionContext or None if not found / expired
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired():
                del self._sessions[session_id]
                self.logger.info("Session expired", session_id=session_id)
                return None
            session.touch()
            return session

    def get_or_create(self, session_id: str) -> SessionContext:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                self._maybe_sweep_locked()
                session = self._new_session(session_id)
                self._sessions[session_id] = session
                self.logger.debug("Session created", session_id=session_id)
            return session

    # =========================================================================
    # Session Management
    # =========================================================================

    def delete_session(self, session_id: str) -> bool:
        """
        Delete all data for a session.

        Returns:
            True if the session existed
        """
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            self.logger.info("Session deleted", session_id=session_id, events=len(removed.log))
        return removed is not None

    def clear_expired(self) -> int:
        """
        Clear all expired sessions.

        Returns:
            Number of sessions cleared
        """
        with self._lock:
            expired_keys = [k for k, v in self._sessions.items() if v.is_expired()]
            for key in expired_keys:
                del self._sessions[key]

        if expired_keys:
            self.logger.info("Cleared expired sessions", count=len(expired_keys))
        return len(expired_keys)

    def _maybe_sweep_locked(self) -> None:
        now = _utcnow()
        if now - self._last_sweep >= self._sweep_interval:
            self._last_sweep = now
            self.clear_expired()

    def get_stats(self) -> Dict[str, int]:
        """
        Get session statistics.

        Returns:
            Dict with session, event and cached ranking counts
        """
        with self._lock:
            sessions = list(self._sessions.values())
        return {
            "sessions": len(sessions),
            "events": sum(len(s.log) for s in sessions),
            "cached_rankings": sum(len(s.cache) for s in sessions),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# Global session manager
# Singleton to maintain state across requests

_sessions: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get the storefront session manager singleton."""
    global _sessions
    if _sessions is None:
        pipeline = get_pipeline()
        _sessions = SessionManager.from_settings(
            get_settings(),
            analyzer=lambda events: pipeline.analyze(events),
        )
    return _sessions


def reset_session_manager() -> None:
    global _sessions
    _sessions = None
