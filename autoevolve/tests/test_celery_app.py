"""Tests for celery_app.py"""

from unittest.mock import AsyncMock, patch

from autoevolve.models import BatchResult


def test_beat_schedule_runs_batch_task():
    from autoevolve.celery_app import app, settings

    entry = app.conf.beat_schedule["evolution-batch"]
    assert entry["task"] == "autoevolve.celery_app.run_evolution_batch"
    assert entry["schedule"] == float(settings.schedule_seconds)


def test_task_runs_one_batch_with_shared_limiter():
    from autoevolve import celery_app

    result = BatchResult(success=True, predictions_generated=2, message="ok")
    with patch.object(celery_app, "run_once", new=AsyncMock(return_value=result)) as run:
        first = celery_app.run_evolution_batch()
        celery_app.run_evolution_batch()

    assert first["success"] is True
    assert first["predictionsGenerated"] == 2
    limiters = {call.kwargs["limiter"] for call in run.await_args_list}
    assert limiters == {celery_app.limiter}


def test_task_reports_failure_without_raising():
    from autoevolve import celery_app

    result = BatchResult(success=False, error="database unreachable")
    with patch.object(celery_app, "run_once", new=AsyncMock(return_value=result)):
        assert celery_app.run_evolution_batch() == {"success": False, "error": "database unreachable"}
