"""
Attrition Engine - FastAPI Application

Service entry point: health, configuration and attrition run endpoints.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI
from pydantic import BaseModel

from attrition_engine import __version__
from attrition_engine.api.attrition_routes import close_collaborators
from attrition_engine.api.attrition_routes import router as attrition_router
from attrition_engine.config import Settings, get_settings, get_settings_dep
from attrition_engine.logging import get_in_memory_logs, get_logger, setup_logging
from attrition_engine.runtime.event_bus import Event, EventType, get_event_bus

# Setup logging
setup_logging(level=get_settings().log_level)
logger = get_logger(__name__)


# =============================================================================
# Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    time: str
    uptime_seconds: float


class ConfigResponse(BaseModel):
    """Configuration response."""

    env: str
    cluster_url: str
    request_timeout: float
    seeded: bool


# =============================================================================
# Application State
# =============================================================================


class AppState:
    """Application state container."""

    def __init__(self) -> None:
        self.start_time: datetime = datetime.now(UTC)


state = AppState()


# =============================================================================
# Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info("Starting Attrition Engine v%s (%s)", __version__, settings.env.value)
    logger.info("Cluster controller: %s", settings.cluster_url)

    event_bus = get_event_bus()
    await event_bus.publish(Event(type=EventType.ENGINE_STARTED))

    yield

    logger.info("Shutting down Attrition Engine")
    await close_collaborators()
    await event_bus.publish(Event(type=EventType.ENGINE_STOPPED))


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Attrition Engine",
    description="Chaos controller that kills, reboots and degrades cluster members",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(attrition_router)


# =============================================================================
# REST Endpoints
# =============================================================================


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Health check endpoint.

    Returns current status, version, and uptime.
    """
    now = datetime.now(UTC)
    uptime = (now - state.start_time).total_seconds()

    return HealthResponse(
        status="healthy",
        version=__version__,
        time=now.isoformat(),
        uptime_seconds=round(uptime, 2),
    )


@app.get("/config", response_model=ConfigResponse)
async def config(settings: Settings = Depends(get_settings_dep)) -> ConfigResponse:
    """Service configuration (no run options)."""
    redacted = settings.get_redacted_config()
    return ConfigResponse(
        env=str(redacted["env"]),
        cluster_url=str(redacted["cluster_url"]),
        request_timeout=float(redacted["request_timeout"] or 0),
        seeded=bool(redacted["seeded"]),
    )


@app.get("/logs")
async def logs(level: str = "INFO", limit: int = 50) -> dict[str, Any]:
    """Recent log lines kept in memory."""
    entries = get_in_memory_logs(level=level, limit=limit)
    return {"logs": entries, "count": len(entries)}


def run() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "attrition_engine.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
