"""
FastAPI surface for the evolution pipeline

Endpoints:
  POST /evolve?action=run|status  - Run a batch now, or report status
  GET /evolve/status  - Latest evolution state and prediction counts
  GET /health
"""

import logging
from typing import Literal

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from autoevolve import __version__
from autoevolve.config import Settings, configure_logging
from autoevolve.errors import BatchSetupError
from autoevolve.evaluation import RateLimiter
from autoevolve.orchestrator import run_once, status_once

configure_logging()
logger = logging.getLogger(__name__)

settings = Settings.from_env()
limiter = RateLimiter(settings.cloud_eval_interval)

app = FastAPI(title="Chess Autonomous Evolution API", version=__version__)


class EvolveResponse(BaseModel):
    success: bool
    gamesProcessed: int
    predictionsGenerated: int
    divergentPredictions: int
    durationMs: int
    message: str


class PredictionCounts(BaseModel):
    total: int
    divergent: int
    byTier: dict[str, dict[str, int]]


class StatusResponse(BaseModel):
    success: bool
    state: dict | None
    predictions: PredictionCounts


@app.exception_handler(BatchSetupError)
async def batch_setup_error_handler(request: Request, exc: BatchSetupError):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"success": False, "error": str(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal error"})


@app.post("/evolve", response_model=EvolveResponse | StatusResponse)
async def evolve(action: Literal["run", "status"] = Query("run")):
    """Run one batch, or return status when ``action=status``."""
    if action == "status":
        return status_once(settings)
    result = await run_once(settings, limiter=limiter)
    if not result.success:
        return JSONResponse(status_code=503, content=result.to_response())
    return result.to_response()


@app.get("/evolve/status", response_model=StatusResponse)
def evolve_status():
    """Latest evolution state and prediction counts."""
    return status_once(settings)


@app.get("/health")
def health():
    return {"status": "ok"}
