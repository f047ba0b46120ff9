"""
Tests for session state: interaction log, ranking cache and debounced analysis.
"""

from datetime import datetime, timedelta, timezone


class TestSessionContext:
    """Tests for SessionContext."""

    def test_record_marks_analysis_dirty(self, session_manager, impulse_events):
        session = session_manager.get_or_create("s1")
        _, before = session.current_analysis()

        assert session.record(impulse_events) == 5
        assert session.analysis.dirty is True

        profile, after = session.current_analysis()
        assert before.label.value == "researcher"
        assert after.label.value == "impulse_buyer"
        assert profile.total_interactions == 5

    def test_empty_record_keeps_analysis_clean(self, session_manager):
        session = session_manager.get_or_create("s1")
        session.current_analysis()

        assert session.record([]) == 0
        assert session.analysis.dirty is False

    def test_record_leaves_cache_alone(self, session_manager, impulse_events):
        session = session_manager.get_or_create("s1")
        session.cache.put("page-load-ranking-home", [])

        session.record(impulse_events)

        assert len(session.cache) == 1
        assert session.refresh() == 1
        assert len(session.cache) == 0

    def test_idle_expiry(self, session_manager):
        session = session_manager.get_or_create("s1")

        session.updated_at = datetime.now(timezone.utc) - timedelta(seconds=session.ttl_seconds + 1)

        assert session.is_expired() is True


class TestSessionManager:
    """Tests for SessionManager."""

    def test_get_or_create_reuses(self, session_manager):
        first = session_manager.get_or_create("s1")

        assert session_manager.get_or_create("s1") is first
        assert session_manager.get_session("other") is None
        assert len(session_manager) == 1

    def test_sessions_are_isolated(self, session_manager, impulse_events):
        a = session_manager.get_or_create("a")
        b = session_manager.get_or_create("b")

        a.record(impulse_events)

        assert len(a.log) == 5
        assert len(b.log) == 0
        assert a.cache is not b.cache

    def test_expired_session_dropped(self, session_manager):
        session = session_manager.get_or_create("s1")
        session.updated_at -= timedelta(seconds=session.ttl_seconds + 1)

        assert session_manager.get_session("s1") is None
        assert len(session_manager) == 0
        assert session_manager.get_or_create("s1") is not session

    def test_access_extends_lifetime(self, session_manager):
        session = session_manager.get_or_create("s1")
        stale = datetime.now(timezone.utc) - timedelta(seconds=session.ttl_seconds - 10)
        session.updated_at = stale

        assert session_manager.get_session("s1") is session
        assert session.updated_at > stale

    def test_delete(self, session_manager, impulse_events):
        session_manager.get_or_create("s1").record(impulse_events)

        assert session_manager.delete_session("s1") is True
        assert session_manager.delete_session("s1") is False
        assert session_manager.get_session("s1") is None

    def test_clear_expired(self, session_manager):
        session_manager.get_or_create("live")
        old = session_manager.get_or_create("old")
        old.updated_at -= timedelta(days=2)

        assert session_manager.clear_expired() == 1
        assert session_manager.get_session("live") is not None

    def test_expired_sessions_swept_on_create(self):
        from services.session_manager import SessionManager

        manager = SessionManager(debounce_seconds=0.0, sweep_interval_seconds=0.0)
        manager.get_or_create("old").updated_at -= timedelta(days=2)

        manager.get_or_create("new")

        assert len(manager) == 1

    def test_sweep_waits_for_interval(self, session_manager):
        session_manager.get_or_create("old").updated_at -= timedelta(days=2)

        session_manager.get_or_create("new")

        assert len(session_manager) == 2

    def test_stats(self, session_manager, impulse_events):
        session = session_manager.get_or_create("s1")
        session.record(impulse_events)
        session.cache.put("k", [])
        session_manager.get_or_create("s2")

        assert session_manager.get_stats() == {"sessions": 2, "events": 5, "cached_rankings": 1}

    def test_custom_analyzer(self, rules_only_pipeline, impulse_events):
        from services.session_manager import SessionManager

        seen = []

        def analyzer(events):
            seen.append(len(events))
            return rules_only_pipeline.analyze(events)

        manager = SessionManager(debounce_seconds=0.0, analyzer=analyzer)
        session = manager.get_or_create("s1")
        session.record(impulse_events)
        session.current_analysis()

        assert seen == [5]

    def test_from_settings(self, test_settings):
        from services.session_manager import SessionManager

        manager = SessionManager.from_settings(test_settings)
        session = manager.get_or_create("s1")

        assert session.ttl_seconds == test_settings.session_ttl_seconds
