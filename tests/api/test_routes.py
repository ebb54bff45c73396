"""
HTTP endpoint tests for the health, sync status, and metrics routes.

Uses FastAPI TestClient without entering the lifespan, so no scheduler or
database initialization runs; the runtime dependency is overridden with the
in-memory test runtime.
"""
import pytest
from fastapi.testclient import TestClient

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import TODAY, make_game

from hoopsync.main import app
from hoopsync.services.runtime import get_runtime
from hoopsync.services.sync.units import Outcome, UnitName


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def client(runtime):
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# HEALTH
# =============================================================================

class TestHealthEndpoints:
    """Health and metrics routes."""

    def test_health_is_healthy_when_idle(self, client):
        """Should report healthy with both components before any sync."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert set(body["components"]) == {"cache", "sync"}
        assert body["version"] == "1.0.0"

    def test_health_unhealthy_after_repeated_failures(self, client, runtime):
        """Should report unhealthy once failures exceed the threshold."""
        from hoopsync.services.sync.units import UnitOutcome

        for _ in range(6):
            runtime.recorder.record(UnitOutcome(unit=UnitName.GAMES_TODAY, outcome=Outcome.FAILURE))

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert body["components"]["sync"]["reasons"]

    def test_sync_health_lists_units_and_breakers(self, client):
        """Should include metrics, alerts, unit cadence, and breaker states."""
        body = client.get("/health/sync").json()

        assert body["metrics"]["total_syncs"] == 0
        assert body["alerts"] == []
        assert [u["name"] for u in body["units"]] == list(UnitName.ORDER)
        assert body["circuit_breakers"] == {"espn": "closed", "balldontlie": "closed"}

    def test_sync_health_for_one_unit(self, client):
        """Should scope metrics to the requested unit."""
        body = client.get("/health/sync", params={"unit": UnitName.TEAMS}).json()

        assert body["metrics"]["unit"] == UnitName.TEAMS

    def test_sync_health_unknown_unit(self, client):
        """Should return 404 for an unknown unit."""
        assert client.get("/health/sync", params={"unit": "nope"}).status_code == 404

    def test_cache_health(self, client):
        """Should expose cache statistics."""
        body = client.get("/health/cache").json()

        assert body["status"] == "healthy"
        assert body["statistics"]["backend"] == "memory"
        assert body["statistics"]["total_requests"] == 0

    def test_metrics_exposition(self, client):
        """Should serve Prometheus text format."""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "sync_unit_runs_total" in response.text

    def test_correlation_id_is_echoed(self, client):
        """Should echo the caller's correlation id."""
        response = client.get("/health", headers={"X-Correlation-ID": "abc123"})

        assert response.headers["X-Correlation-ID"] == "abc123"


# =============================================================================
# SYNC
# =============================================================================

class TestSyncEndpoints:
    """Sync status and manual triggers."""

    def test_status_without_scheduler(self, client):
        """Should report a null scheduler when none runs in-process."""
        body = client.get("/api/v1/sync/status").json()

        assert body["scheduler"] is None
        assert len(body["units"]) == 5

    def test_trigger_runs_unit(self, client, schedule_provider, seeded_teams):
        """Should run the unit and return its outcome."""
        schedule_provider.games[TODAY] = [make_game("401", "BOS", "NYK")]

        response = client.post(f"/api/v1/sync/trigger/{UnitName.GAMES_TODAY}")

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == Outcome.SUCCESS
        assert body["records"] == 1
        assert body["error"] is None

    def test_trigger_unknown_unit(self, client):
        """Should return 404 for an unknown unit."""
        assert client.post("/api/v1/sync/trigger/nope").status_code == 404
