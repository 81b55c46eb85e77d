"""
Tests for the HTTP control surface.

The lifespan is not started; services are injected through
dependency_overrides.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from plugin_guard.config import Settings
from plugin_guard.dependencies import get_pending_queue, get_scan_orchestrator, get_settings
from plugin_guard.main import app
from plugin_guard.models import RateLimitState
from plugin_guard.services.scan_orchestrator import ScanOrchestrator
from plugin_guard.services.upload.pending_queue import PendingUploadQueue


@pytest.fixture
def settings(temp_dir):
    return Settings(
        api_key="sk_test",
        server_root=temp_dir,
        data_directory=os.path.join(temp_dir, "data"),
        watch_paths=["Modules", "Modules", "Plugins"],
        include_patterns=["*.dll"],
        exclude_patterns=[],
    )


@pytest.fixture
def pending_queue(settings):
    return PendingUploadQueue(settings.pending_uploads_file)


@pytest.fixture
def orchestrator():
    mock = MagicMock(spec=ScanOrchestrator)
    mock.is_running = True
    mock.is_scanning = False
    mock.last_result = None
    mock.get_rate_limit_state.return_value = RateLimitState()
    mock.run_cycle = AsyncMock()
    mock.clear_caches = AsyncMock()
    return mock


@pytest.fixture
def client(settings, pending_queue, orchestrator):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_pending_queue] = lambda: pending_queue
    app.dependency_overrides[get_scan_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestControlApi:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_status_unlimited(self, client):
        data = client.get("/api/status").json()

        assert data["running"] is True
        assert data["scanning"] is False
        assert data["rate_limit"] == {"unlimited": True}
        assert data["pending_uploads"] == 0
        assert data["last_scan"] is None

    def test_status_with_quota(self, client, orchestrator):
        orchestrator.get_rate_limit_state.return_value = RateLimitState(
            limit=100, tokens=40, reset_unix_seconds=1_700_000_000, window_seconds=600
        )

        rate_limit = client.get("/api/status").json()["rate_limit"]

        assert rate_limit["unlimited"] is False
        assert rate_limit["tokens"] == 40
        assert rate_limit["limit"] == 100
        assert rate_limit["window_seconds"] == 600
        assert rate_limit["resets_at"].startswith("2023-11-14T22:13:20")

    def test_config_lists_are_distinct(self, client):
        data = client.get("/api/config").json()

        assert data["watch_paths"] == ["Modules", "Plugins"]
        assert data["include_patterns"] == ["*.dll"]
        assert data["max_concurrent_uploads"] == 3

    def test_clear_cache(self, client, orchestrator):
        response = client.delete("/api/cache")

        assert response.status_code == 200
        orchestrator.clear_caches.assert_awaited_once()

    def test_rescan_is_accepted(self, client):
        response = client.post("/api/rescan", params={"path": "Modules"})

        assert response.status_code == 202
        assert response.json() == {"status": "started", "target": "Modules"}

    def test_version_reports_update_check(self, client):
        result = {"module_version": "0.1.0", "update_check": "unavailable"}
        with patch(
            "plugin_guard.api.control.check_for_updates", AsyncMock(return_value=result)
        ) as check:
            response = client.get("/api/version")

        assert response.status_code == 200
        assert response.json() == result
        check.assert_awaited_once()

    def test_rescan_while_scanning_conflicts(self, client, orchestrator):
        orchestrator.is_scanning = True

        response = client.post("/api/rescan")

        assert response.status_code == 409
        orchestrator.run_cycle.assert_not_called()
