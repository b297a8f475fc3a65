"""
Tests for health-suppression windows and maintenance marks.
"""

import asyncio

import pytest

from attrition_engine.attrition.suppression import (
    HEALTHY_ZONE_KEY,
    IGNORE_SS_FAILURES_ZONE,
    VERSIONS_PER_SECOND,
    HealthSuppressionCoordinator,
    HealthyZone,
)
from attrition_engine.errors import NotCommittedError, OperationFailedError
from attrition_engine.runtime.event_bus import EventBus, EventType
from attrition_engine.store.memory import InMemoryStore
from tests.fixtures.sim_fixtures import EventRecorder


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(initial_backoff=0.001, max_backoff=0.004)


@pytest.fixture
def coordinator(store: InMemoryStore) -> HealthSuppressionCoordinator:
    return HealthSuppressionCoordinator(store, EventBus(), run_id="attrition_test")


class TestHealthyZoneMarker:
    """Marker encoding."""

    def test_decode_missing(self) -> None:
        assert HealthyZone.decode(None) is None

    def test_encode_decode(self) -> None:
        marker = HealthyZone(zone_id="z1", expires_at_version=42)
        assert HealthyZone.decode(marker.encode()) == marker

    def test_ignore_marker(self) -> None:
        assert HealthyZone(zone_id=IGNORE_SS_FAILURES_ZONE).ignores_storage_failures
        assert not HealthyZone(zone_id="z1").ignores_storage_failures


class TestMaintenance:
    """Maintenance marks."""

    @pytest.mark.asyncio
    async def test_mark_sets_version_expiry(
        self, coordinator: HealthSuppressionCoordinator
    ) -> None:
        assert await coordinator.mark_zone_for_maintenance("z1", 5.0)

        marker = await coordinator.read_marker()
        assert marker == HealthyZone(zone_id="z1", expires_at_version=5 * VERSIONS_PER_SECOND)

    @pytest.mark.asyncio
    async def test_mark_refused_while_failures_ignored(
        self, coordinator: HealthSuppressionCoordinator, store: InMemoryStore
    ) -> None:
        await coordinator.set_healthy_zone(IGNORE_SS_FAILURES_ZONE, 0)
        commits = store.commit_count

        assert not await coordinator.mark_zone_for_maintenance("z1", 5.0)
        assert (await coordinator.read_marker()).zone_id == IGNORE_SS_FAILURES_ZONE
        assert store.commit_count == commits

    @pytest.mark.asyncio
    async def test_mark_replaces_previous_mark(
        self, coordinator: HealthSuppressionCoordinator
    ) -> None:
        await coordinator.mark_zone_for_maintenance("z1", 5.0)
        await coordinator.mark_zone_for_maintenance("z2", 1.0)
        assert (await coordinator.read_marker()).zone_id == "z2"

    @pytest.mark.asyncio
    async def test_mark_retries_transient_errors(
        self, coordinator: HealthSuppressionCoordinator, store: InMemoryStore
    ) -> None:
        store.inject_errors(NotCommittedError(), NotCommittedError())
        assert await coordinator.mark_zone_for_maintenance("z1", 1.0)
        assert store.peek(HEALTHY_ZONE_KEY) is not None

    @pytest.mark.asyncio
    async def test_mark_fatal_error_propagates(
        self, coordinator: HealthSuppressionCoordinator, store: InMemoryStore
    ) -> None:
        store.inject_errors(OperationFailedError())
        with pytest.raises(OperationFailedError):
            await coordinator.mark_zone_for_maintenance("z1", 1.0)

    @pytest.mark.asyncio
    async def test_mark_publishes_event(self, store: InMemoryStore) -> None:
        bus = EventBus()
        recorder = EventRecorder()
        await bus.subscribe(EventType.MAINTENANCE_MARKED, recorder)

        coordinator = HealthSuppressionCoordinator(store, bus, run_id="attrition_test")
        await coordinator.mark_zone_for_maintenance("z1", 2.0)

        assert len(recorder.events) == 1
        assert recorder.events[0].data["zone_id"] == "z1"
        assert recorder.events[0].run_id == "attrition_test"


class TestSuppressionWindows:
    """Ignore-storage-failure windows."""

    @pytest.mark.asyncio
    async def test_no_window_waits_nothing(self, coordinator: HealthSuppressionCoordinator) -> None:
        assert coordinator.active_window is None
        assert await coordinator.wait_active() is True

    @pytest.mark.asyncio
    async def test_window_sets_then_clears_marker(
        self, coordinator: HealthSuppressionCoordinator, store: InMemoryStore
    ) -> None:
        window = coordinator.suppress_failures_for(0.05)
        await asyncio.sleep(0.02)

        marker = await coordinator.read_marker()
        assert marker is not None
        assert marker.ignores_storage_failures
        assert marker.expires_at_version is None

        assert await window is True
        assert store.peek(HEALTHY_ZONE_KEY) is None

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_window_running(
        self, coordinator: HealthSuppressionCoordinator, store: InMemoryStore
    ) -> None:
        window = coordinator.suppress_failures_for(0.05)
        waiter = asyncio.create_task(coordinator.wait_active())
        await asyncio.sleep(0.01)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert not window.cancelled()
        assert await coordinator.wait_active() is True
        assert store.peek(HEALTHY_ZONE_KEY) is None

    @pytest.mark.asyncio
    async def test_new_window_supersedes_without_cancelling(
        self, coordinator: HealthSuppressionCoordinator
    ) -> None:
        first = coordinator.suppress_failures_for(0.05)
        second = coordinator.suppress_failures_for(0.01)

        assert coordinator.active_window is second
        assert coordinator.open_windows == 2

        await coordinator.wait_all()
        assert first.result() is True
        assert second.result() is True
        assert coordinator.open_windows == 0

    @pytest.mark.asyncio
    async def test_window_events(self, store: InMemoryStore) -> None:
        bus = EventBus()
        recorder = EventRecorder()
        await bus.subscribe(None, recorder)

        coordinator = HealthSuppressionCoordinator(store, bus)
        await coordinator.suppress_failures_for(0.01)

        assert recorder.types == [EventType.SUPPRESSION_STARTED, EventType.SUPPRESSION_CLEARED]
