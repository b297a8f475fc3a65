"""
Chaos testing configuration and shared fixtures.

Provides common fixtures and configuration for chaos/failure injection tests.
"""

import random

import pytest

from attrition_engine.store.memory import InMemoryStore


@pytest.fixture(autouse=True)
def seed_random():
    """Seed random for reproducible chaos scenarios."""
    random.seed(42)
    yield
    random.seed()  # Reset after test


@pytest.fixture
def chaos_store() -> InMemoryStore:
    """Store with short backoff so injected conflicts resolve quickly."""
    return InMemoryStore(initial_backoff=0.001, max_backoff=0.002)
