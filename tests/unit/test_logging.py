"""
Tests for the logging module and request tracing middleware.
"""

import json

import pytest
import structlog


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_development_mode(self):
        """Test that development mode uses console renderer."""
        from core.logging import configure_logging

        # Should not raise
        configure_logging(json_logs=False, log_level="DEBUG")

    def test_configure_production_mode(self):
        """Test that production mode uses JSON renderer."""
        from core.logging import configure_logging

        # Should not raise
        configure_logging(json_logs=True, log_level="INFO")

    def test_configure_log_level(self):
        """Test that log level is correctly set."""
        import logging
        from core.logging import configure_logging

        configure_logging(log_level="WARNING")

        assert logging.getLogger().level == logging.WARNING

    def test_noisy_loggers_quieted(self):
        import logging
        from core.logging import configure_logging

        configure_logging(log_level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING


class TestContextBinding:
    """Tests for context binding functions."""

    def test_bind_context(self):
        """Test binding context variables."""
        from core.logging import bind_context, clear_context

        clear_context()
        bind_context(session_id="sess-1", request_id="abc")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx.get("session_id") == "sess-1"
        assert ctx.get("request_id") == "abc"

        clear_context()

    def test_clear_context(self):
        """Test clearing context variables."""
        from core.logging import bind_context, clear_context

        bind_context(session_id="sess-1")
        clear_context()

        ctx = structlog.contextvars.get_contextvars()
        assert "session_id" not in ctx

    def test_unbind_specific_context(self):
        """Test unbinding specific context variables."""
        from core.logging import bind_context, clear_context, unbind_context

        clear_context()
        bind_context(request_id="abc", session_id="xyz")

        unbind_context("session_id")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx.get("request_id") == "abc"
        assert "session_id" not in ctx

        clear_context()


class TestLoggerMixin:
    """Tests for LoggerMixin class."""

    def test_mixin_provides_logger(self):
        from core.logging import LoggerMixin

        class TestClass(LoggerMixin):
            pass

        assert TestClass().logger is not None

    def test_engine_classes_log(self):
        """Engine classes log through the mixin without raising."""
        from core.logging import configure_logging
        from recs.ranking_cache import RankingCache

        configure_logging(json_logs=False)
        cache = RankingCache()
        cache.put("k", [])

        assert cache.invalidate() == 1


class TestJSONOutput:
    """Tests for JSON logging output."""

    def test_json_output_is_valid_json(self, capsys):
        """Test that JSON output is valid JSON."""
        from core.logging import configure_logging, get_logger

        configure_logging(json_logs=True, log_level="INFO")
        logger = get_logger("json_test")

        logger.info("Test message", key="value")

        captured = capsys.readouterr()
        if captured.out:
            for line in captured.out.strip().split("\n"):
                if line.startswith("{"):
                    data = json.loads(line)
                    assert "event" in data


class TestRequestTracing:
    """Tests for RequestTracingMiddleware."""

    def test_request_id_header_added(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.headers.get("X-Request-ID")

    def test_request_id_is_echoed(self, client):
        response = client.get("/live", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_context_cleared_after_request(self, client):
        client.get("/health", headers={"X-Session-ID": "sess-9"})

        ctx = structlog.contextvars.get_contextvars()
        assert "session_id" not in ctx


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
