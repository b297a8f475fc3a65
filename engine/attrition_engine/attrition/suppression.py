"""
Health-suppression coordination.

Two signals share one well-known marker key in the system under test:

- ignore storage-server failures: written before the controller causes a
  failure it does not want the system's automatic failure response to
  react to; cleared again after a duration
- planned maintenance: tells the system that losing a given zone is
  expected until a version-based expiry

Suppression windows run as detached tasks. Cancelling the run that started
one never cancels the window: its clear step always executes. A new window
supersedes the previous one as the "active" window but does not cancel it;
each closes at its own time.
"""

import asyncio
import json

from pydantic import BaseModel

from attrition_engine.interfaces import KeyValueStore, TransactionOption
from attrition_engine.logging import get_logger
from attrition_engine.runtime.event_bus import Event, EventBus, EventType, get_event_bus

logger = get_logger(__name__)

HEALTHY_ZONE_KEY = b"\xff\x02/healthyZone"
IGNORE_SS_FAILURES_ZONE = "IgnoreSSFailures"
VERSIONS_PER_SECOND = 1_000_000


class HealthyZone(BaseModel):
    """Decoded marker value."""

    zone_id: str
    expires_at_version: int | None = None

    @property
    def ignores_storage_failures(self) -> bool:
        return self.zone_id == IGNORE_SS_FAILURES_ZONE

    def encode(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes | None) -> "HealthyZone | None":
        if raw is None:
            return None
        return cls.model_validate(json.loads(raw))


class HealthSuppressionCoordinator:
    """
    Opens and closes suppression windows and maintenance marks.

    All writes retry forever through the store's on_error contract.
    """

    def __init__(
        self,
        store: KeyValueStore,
        event_bus: EventBus | None = None,
        run_id: str | None = None,
    ) -> None:
        self._store = store
        self._event_bus = event_bus or get_event_bus()
        self._run_id = run_id
        self._active: asyncio.Task[bool] | None = None
        # Strong references so detached windows are not garbage collected
        self._windows: set[asyncio.Task[bool]] = set()

    @property
    def active_window(self) -> asyncio.Task[bool] | None:
        """The most recently opened suppression window."""
        return self._active

    @property
    def open_windows(self) -> int:
        return len(self._windows)

    async def _publish(self, event_type: EventType, **data: object) -> None:
        await self._event_bus.publish(Event(type=event_type, data=dict(data), run_id=self._run_id))

    async def set_healthy_zone(self, zone_id: str, seconds: float) -> bool:
        """
        Write the marker for a zone.

        Args:
            zone_id: Zone under maintenance, or IGNORE_SS_FAILURES_ZONE
            seconds: Lifetime of a maintenance mark (ignored for the
                ignore-failures marker, which never expires by itself)

        Returns:
            False if a maintenance mark was refused because storage-server
            failures are currently being ignored, True once committed
        """
        tr = self._store.create_transaction()
        while True:
            try:
                tr.set_option(TransactionOption.LOCK_AWARE)
                tr.set_option(TransactionOption.PRIORITY_SYSTEM_IMMEDIATE)
                current = HealthyZone.decode(await tr.get(HEALTHY_ZONE_KEY))
                if (
                    current is not None
                    and current.ignores_storage_failures
                    and zone_id != IGNORE_SS_FAILURES_ZONE
                ):
                    logger.warning(
                        "Refusing maintenance mark for zone %s: storage failures are ignored",
                        zone_id,
                    )
                    return False

                expires_at: int | None = None
                if zone_id != IGNORE_SS_FAILURES_ZONE:
                    read_version = await tr.get_read_version()
                    expires_at = read_version + int(seconds * VERSIONS_PER_SECOND)

                marker = HealthyZone(zone_id=zone_id, expires_at_version=expires_at)
                tr.set(HEALTHY_ZONE_KEY, marker.encode())
                await tr.commit()
                return True
            except Exception as e:
                await tr.on_error(e)

    async def clear_healthy_zone(self) -> None:
        """Delete the marker, retrying until the clear commits."""
        tr = self._store.create_transaction()
        while True:
            try:
                tr.set_option(TransactionOption.LOCK_AWARE)
                tr.clear(HEALTHY_ZONE_KEY)
                await tr.commit()
                return
            except Exception as e:
                await tr.on_error(e)

    async def read_marker(self) -> HealthyZone | None:
        """Read the current marker (diagnostics and tests)."""
        tr = self._store.create_transaction()
        while True:
            try:
                tr.set_option(TransactionOption.LOCK_AWARE)
                return HealthyZone.decode(await tr.get(HEALTHY_ZONE_KEY))
            except Exception as e:
                await tr.on_error(e)

    async def _ignore_failures_for(self, duration: float) -> bool:
        logger.info("Ignoring storage server failures for %.2fs", duration)
        await self.set_healthy_zone(IGNORE_SS_FAILURES_ZONE, 0)
        await self._publish(EventType.SUPPRESSION_STARTED, duration=duration)

        await asyncio.sleep(duration)

        logger.info("Clearing storage server failure suppression")
        await self.clear_healthy_zone()
        await self._publish(EventType.SUPPRESSION_CLEARED, duration=duration)
        logger.debug("Storage server failure suppression complete")
        return True

    def suppress_failures_for(self, duration: float) -> asyncio.Task[bool]:
        """
        Open a suppression window.

        The window runs detached from the caller; it becomes the active
        window, superseding (not cancelling) any earlier one.

        Returns:
            Task resolving to True once the marker has been cleared
        """
        task = asyncio.create_task(self._ignore_failures_for(duration))
        self._windows.add(task)
        task.add_done_callback(self._windows.discard)
        self._active = task
        return task

    async def wait_active(self) -> bool:
        """
        Wait for the active window to close.

        Shielded: cancelling the waiter leaves the window running.
        True when no window was ever opened.
        """
        if self._active is None:
            return True
        return await asyncio.shield(self._active)

    async def wait_all(self) -> None:
        """Wait for every still-open window, superseded ones included."""
        if self._windows:
            await asyncio.gather(*list(self._windows))

    async def mark_zone_for_maintenance(self, zone_id: str, seconds: float) -> bool:
        """
        Mark a zone as under planned maintenance before killing it.

        Returns:
            Whether the mark was written
        """
        marked = await self.set_healthy_zone(zone_id, seconds)
        if marked:
            logger.info("Marked zone %s for maintenance for %.2fs", zone_id, seconds)
            await self._publish(EventType.MAINTENANCE_MARKED, zone_id=zone_id, seconds=seconds)
        return marked
