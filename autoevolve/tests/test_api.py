"""Tests for api/main.py"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from autoevolve.errors import BatchSetupError
from autoevolve.models import BatchResult


@pytest.fixture
def client():
    from autoevolve.api.main import app
    return TestClient(app, raise_server_exceptions=False)


def test_run_batch_endpoint(client):
    result = BatchResult(
        success=True, games_processed=4, predictions_generated=3,
        divergent_predictions=1, duration_ms=1234, message="Generation 5: 3 predictions",
    )
    with patch("autoevolve.api.main.run_once", new=AsyncMock(return_value=result)) as run:
        resp = client.post("/evolve")

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "gamesProcessed": 4,
        "predictionsGenerated": 3,
        "divergentPredictions": 1,
        "durationMs": 1234,
        "message": "Generation 5: 3 predictions",
    }
    run.assert_awaited_once()


def test_failed_batch_is_non_2xx(client):
    result = BatchResult(success=False, error="database unreachable")
    with patch("autoevolve.api.main.run_once", new=AsyncMock(return_value=result)):
        resp = client.post("/evolve", params={"action": "run"})
    assert resp.status_code == 503
    assert resp.json() == {"success": False, "error": "database unreachable"}


def test_status_endpoints(client):
    body = {"success": True, "state": None, "predictions": {"total": 0, "divergent": 0, "byTier": {}}}
    with patch("autoevolve.api.main.status_once", return_value=body):
        assert client.get("/evolve/status").json() == body
        assert client.post("/evolve", params={"action": "status"}).json() == body


def test_status_with_database_down(client):
    with patch("autoevolve.api.main.status_once", side_effect=BatchSetupError("database unreachable")):
        resp = client.get("/evolve/status")
    assert resp.status_code == 503
    assert resp.json() == {"success": False, "error": "database unreachable"}


def test_unexpected_error_does_not_leak(client):
    with patch("autoevolve.api.main.run_once", new=AsyncMock(side_effect=RuntimeError("secret dsn"))):
        resp = client.post("/evolve")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Internal error"}


def test_unknown_action_rejected(client):
    assert client.post("/evolve", params={"action": "explode"}).status_code == 422


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
