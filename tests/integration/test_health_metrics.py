"""Integration tests for /health, /healthz and /metrics endpoints."""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.db.inmemory import InMemoryConversationStore, InMemoryDocumentRegistry
from backend.app.llm.client import StubCompletionGateway
from backend.app.main import app
from backend.app.resources import AppResources


@pytest.fixture
def client(settings_factory) -> Generator[TestClient, None, None]:
    """Test client over in-memory resources."""
    app.state.resources = AppResources(
        settings=settings_factory(),
        conversations=InMemoryConversationStore(),
        documents=InMemoryDocumentRegistry(),
        gateway=StubCompletionGateway(),
        http_client=httpx.AsyncClient(),
    )
    yield TestClient(app)
    app.state.resources = None


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    def test_health_is_always_ok(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_healthz_without_database(self, client: TestClient) -> None:
        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["components"]["db"] == "not_configured"
        assert data["components"]["completion"] == "configured"

    @patch("backend.app.api.routes.health.check_db", new_callable=AsyncMock)
    def test_healthz_returns_200_when_db_ok(self, mock_check_db: AsyncMock, client: TestClient) -> None:
        mock_check_db.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json()["components"]["db"] == "ok"

    @patch("backend.app.api.routes.health.check_db", new_callable=AsyncMock)
    def test_healthz_returns_503_when_db_fails(
        self, mock_check_db: AsyncMock, client: TestClient
    ) -> None:
        mock_check_db.return_value = (False, "connection refused")

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["db"] == "connection refused"

    def test_healthz_reports_stub_without_api_key(self, settings_factory) -> None:
        app.state.resources = AppResources(
            settings=settings_factory(completion_api_key=""),
            conversations=InMemoryConversationStore(),
            documents=InMemoryDocumentRegistry(),
            gateway=StubCompletionGateway(),
            http_client=httpx.AsyncClient(),
        )
        try:
            response = TestClient(app).get("/healthz")
        finally:
            app.state.resources = None

        assert response.json()["components"]["completion"] == "stub"


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    def test_metrics_returns_prometheus_format(self, client: TestClient) -> None:
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "# HELP" in response.text

    def test_metrics_includes_chat_metrics(self, client: TestClient) -> None:
        from backend.app.utils.metrics import (
            PrometheusCompletionMetrics,
            record_turn,
        )

        metrics = PrometheusCompletionMetrics()
        metrics.record_latency("complete", "success", 120.0)
        metrics.inc_error("http_503")
        metrics.inc_skipped_frame("invalid_json")
        record_turn("stream", "success")

        text = client.get("/metrics").text

        assert "completion_latency_ms" in text
        assert "completion_errors_total" in text
        assert "sse_frames_skipped_total" in text
        assert "chat_turns_total" in text

    def test_metrics_can_be_scraped_multiple_times(self, client: TestClient) -> None:
        response1 = client.get("/metrics")
        response2 = client.get("/metrics")

        assert response1.status_code == 200
        assert response2.status_code == 200


class TestRootEndpoint:
    def test_root_returns_api_info(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "PDF Chat API", "version": "0.1.0"}
