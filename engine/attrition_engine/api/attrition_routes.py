"""
Attrition API routes.

Start live attrition runs against the configured cluster and inspect their
reports. Runs execute as background tasks on the server's event loop.
"""

import asyncio
import random
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from attrition_engine.attrition.models import AttritionConfig, RunReport
from attrition_engine.attrition.workload import AttritionWorkload
from attrition_engine.cluster.client import AsyncClusterClient
from attrition_engine.config import Settings, get_settings_dep
from attrition_engine.errors import ConfigurationError
from attrition_engine.interfaces import KeyValueStore, WorkerRoster
from attrition_engine.logging import get_logger
from attrition_engine.runtime.run_context import generate_run_id
from attrition_engine.store.memory import InMemoryStore

router = APIRouter(prefix="/attrition", tags=["Attrition"])
logger = get_logger(__name__)

# Lazy-initialized collaborators
_cluster_client: AsyncClusterClient | None = None
_store: KeyValueStore | None = None

# Run registry
_workloads: dict[str, AttritionWorkload] = {}
_run_tasks: dict[str, asyncio.Task[RunReport]] = {}


def get_cluster_client(settings: Settings = Depends(get_settings_dep)) -> WorkerRoster:
    """Get or create the live cluster client singleton."""
    global _cluster_client
    if _cluster_client is None:
        _cluster_client = AsyncClusterClient(settings, logger)
    return _cluster_client


def get_store() -> KeyValueStore:
    """
    Get the coordination store.

    Defaults to an in-memory store; deployments that need a real fresh-read
    gate override this dependency.
    """
    global _store
    if _store is None:
        _store = InMemoryStore()
    return _store


async def close_collaborators() -> None:
    """Close the cluster client (used on shutdown)."""
    global _cluster_client
    if _cluster_client is not None:
        await _cluster_client.close()
        _cluster_client = None


def reset_attrition_state() -> None:
    """Reset module-level state (for testing)."""
    global _cluster_client, _store
    _cluster_client = None
    _store = None
    _workloads.clear()
    _run_tasks.clear()


# =============================================================================
# Request / Response Models
# =============================================================================


class StartRunRequest(BaseModel):
    """Request to start a live attrition run."""

    options: dict[str, Any] = Field(default_factory=dict)
    seed: int | None = None


class StartRunResponse(BaseModel):
    """Response for a started run."""

    ok: bool
    run_id: str
    config: dict[str, Any]


class RunListResponse(BaseModel):
    runs: list[RunReport]
    count: int


# =============================================================================
# Routes
# =============================================================================


def _report_of(run_id: str) -> RunReport:
    workload = _workloads.get(run_id)
    if workload is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    report = workload.report
    if report is None:
        return RunReport(run_id=run_id, simulated=False)
    return report


@router.post("/runs", response_model=StartRunResponse)
async def start_run(
    request: StartRunRequest,
    settings: Settings = Depends(get_settings_dep),
    roster: WorkerRoster = Depends(get_cluster_client),
    store: KeyValueStore = Depends(get_store),
) -> StartRunResponse:
    """Start a live attrition run in the background."""
    seed = request.seed if request.seed is not None else settings.default_seed
    rng = random.Random(seed)
    try:
        config = AttritionConfig.from_options(request.options, rng)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    run_id = generate_run_id("live")
    workload = AttritionWorkload(
        config,
        store,
        simulated=False,
        roster=roster,
        rng=rng,
        run_id=run_id,
    )
    _workloads[run_id] = workload

    task = asyncio.create_task(workload.start())
    _run_tasks[run_id] = task

    def _log_failure(t: asyncio.Task[RunReport]) -> None:
        if not t.cancelled() and t.exception() is not None:
            logger.error("Attrition run %s failed: %s", run_id, t.exception())

    task.add_done_callback(_log_failure)

    logger.info("Started live attrition run %s", run_id)
    return StartRunResponse(ok=True, run_id=run_id, config=config.model_dump())


@router.get("/runs", response_model=RunListResponse)
async def list_runs() -> RunListResponse:
    """List all runs, newest first."""
    reports = sorted(
        (_report_of(run_id) for run_id in _workloads),
        key=lambda r: r.started_at,
        reverse=True,
    )
    return RunListResponse(runs=reports, count=len(reports))


@router.get("/runs/{run_id}", response_model=RunReport)
async def get_run(run_id: str) -> RunReport:
    """Get a run report."""
    return _report_of(run_id)
