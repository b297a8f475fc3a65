"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import Generator

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("ATTRITION_ENV", "development")
os.environ.setdefault("ATTRITION_LOG_LEVEL", "DEBUG")

# Import shared fixtures from api_fixtures
from tests.api_fixtures import *  # noqa: E402, F403


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure a local .env cannot point tests at a real cluster."""
    for var in (
        "ATTRITION_CLUSTER_URL",
        "ATTRITION_WORKER_SCHEME",
        "ATTRITION_DEFAULT_SEED",
        "ATTRITION_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset module-level singletons between tests."""
    yield

    from attrition_engine.api.attrition_routes import reset_attrition_state
    from attrition_engine.config import get_settings
    from attrition_engine.runtime.event_bus import reset_event_bus

    reset_attrition_state()
    reset_event_bus()
    get_settings.cache_clear()
