"""Celery application that triggers an evolution batch on a fixed schedule."""

import asyncio
import logging

from celery import Celery

from autoevolve.config import Settings, configure_logging
from autoevolve.evaluation import RateLimiter
from autoevolve.orchestrator import run_once

settings = Settings.from_env()
configure_logging()
logger = logging.getLogger(__name__)

app = Celery("autoevolve", broker=settings.redis_url, backend=settings.redis_url)
app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "evolution-batch": {
            "task": "autoevolve.celery_app.run_evolution_batch",
            "schedule": float(settings.schedule_seconds),
        },
    },
)

# Spacing of cloud-eval calls is shared by every batch this worker runs.
limiter = RateLimiter(settings.cloud_eval_interval)


@app.task(name="autoevolve.celery_app.run_evolution_batch")
def run_evolution_batch() -> dict:
    """Celery task: run one batch. Failures are reported, the next beat retries."""
    result = asyncio.run(run_once(settings, limiter=limiter))
    if not result.success:
        logger.error("Evolution batch failed: %s", result.error)
    return result.to_response()
