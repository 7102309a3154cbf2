# tests/test_correlation_id.py
"""
Tests for correlation ID middleware, context management and log output.
"""

import json
import logging

import pytest
from fastapi.testclient import TestClient

from portfolio_tracker.main import app
from portfolio_tracker.database import get_db
from portfolio_tracker.utils.context import get_correlation_id, set_correlation_id, clear_correlation_id
from portfolio_tracker.utils.logging import CorrelationIdFilter, JsonFormatter


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_get_returns_none_when_not_set(self):
        """Should return None when correlation ID is not set."""
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_set_and_get_correlation_id(self):
        """Should set and retrieve correlation ID."""
        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"
        clear_correlation_id()

    def test_clear_correlation_id(self):
        """Should clear correlation ID."""
        set_correlation_id("test-correlation-456")
        clear_correlation_id()
        assert get_correlation_id() is None


class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    @pytest.fixture
    def client(self, db):
        """Create test client with database override."""
        def override_get_db():
            yield db

        app.dependency_overrides[get_db] = override_get_db

        with TestClient(app) as c:
            yield c

        app.dependency_overrides.clear()

    def test_generates_correlation_id_when_not_provided(self, client):
        """Should generate a UUID when no ID is provided."""
        response = client.get("/health/live")

        correlation_id = response.headers["X-Correlation-ID"]
        assert len(correlation_id) == 36
        assert correlation_id.count("-") == 4

    def test_uses_provided_correlation_id(self, client):
        response = client.get("/health/live", headers={"X-Correlation-ID": "sync-button-123"})

        assert response.headers["X-Correlation-ID"] == "sync-button-123"

    def test_uses_request_id_header_as_fallback(self, client):
        response = client.get("/health/live", headers={"X-Request-ID": "extension-456"})

        assert response.headers["X-Correlation-ID"] == "extension-456"

    def test_prefers_correlation_id_over_request_id(self, client):
        response = client.get(
            "/health/live",
            headers={"X-Correlation-ID": "correlation-123", "X-Request-ID": "request-456"},
        )

        assert response.headers["X-Correlation-ID"] == "correlation-123"

    @pytest.mark.parametrize("bad_id", [
        "has spaces in it",
        "x" * 65,
        "newline\\ninjection",
    ])
    def test_malformed_id_is_replaced(self, client, bad_id):
        response = client.get("/health/live", headers={"X-Correlation-ID": bad_id})

        assert response.headers["X-Correlation-ID"] != bad_id
        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_present_on_error_responses(self, client):
        response = client.get("/holdings/999")

        assert response.status_code == 404
        assert "X-Correlation-ID" in response.headers

    def test_different_requests_get_different_ids(self, client):
        id1 = client.get("/health/live").headers["X-Correlation-ID"]
        id2 = client.get("/health/live").headers["X-Correlation-ID"]

        assert id1 != id2


class TestCorrelationIdLogging:
    """The logging filter stamps the current ID on every record."""

    def _record(self, message: str = "Price sync completed") -> logging.LogRecord:
        return logging.LogRecord(
            name="portfolio_tracker.test", level=logging.INFO, pathname=__file__,
            lineno=1, msg=message, args=(), exc_info=None,
        )

    def test_filter_uses_context_value(self):
        set_correlation_id("abc-123")
        try:
            record = self._record()
            CorrelationIdFilter().filter(record)
        finally:
            clear_correlation_id()

        assert record.correlation_id == "abc-123"

    def test_json_formatter_output(self):
        record = self._record()
        record.correlation_id = "abc-123"
        record.synced = 6

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["correlation_id"] == "abc-123"
        assert entry["message"] == "Price sync completed"
        assert entry["extra"] == {"synced": 6}
