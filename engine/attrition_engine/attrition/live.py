"""
Attrition against a live cluster.

Same selection contracts as the simulated scheduler, but targets are real
workers from the cluster controller's roster and kills are reboot requests
sent straight to each worker's control endpoint. Delivery is fire-and-forget,
so the unconstrained loop runs without timer pacing.
"""

import random

from attrition_engine.attrition.models import AttritionConfig, AttritionState, KillRecord
from attrition_engine.attrition.scheduler import BaseAttritionScheduler
from attrition_engine.attrition.selector import resolve_target_id, select_targets
from attrition_engine.attrition.topology import capture_workers
from attrition_engine.domain import KillScope, KillType, Locality, RebootRequest, WorkerDescriptor
from attrition_engine.errors import AttritionError
from attrition_engine.interfaces import KeyValueStore, WorkerRoster
from attrition_engine.logging import get_logger
from attrition_engine.runtime.event_bus import EventBus, EventType

logger = get_logger(__name__)

# Pause requested from workers when not in reboot mode: stay down indefinitely
UNBOUNDED_WAIT_SECONDS = 2**32 - 1


def _worker_locality(worker: WorkerDescriptor) -> Locality:
    return worker.locality


class LiveAttritionScheduler(BaseAttritionScheduler):
    """Attrition that sends reboot requests to live workers."""

    def __init__(
        self,
        config: AttritionConfig,
        roster: WorkerRoster,
        store: KeyValueStore,
        *,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        run_id: str | None = None,
    ) -> None:
        super().__init__(
            config,
            store,
            simulated=False,
            rng=rng,
            event_bus=event_bus,
            run_id=run_id,
        )
        self._roster = roster
        self.pool: list[WorkerDescriptor] = []

    def build_reboot_request(self) -> RebootRequest:
        """Finite pause in reboot mode (whole seconds, truncated), otherwise effectively forever."""
        if self.config.reboot:
            return RebootRequest(wait_for_duration=int(self.config.suspend_duration))
        return RebootRequest(wait_for_duration=UNBOUNDED_WAIT_SECONDS)

    async def _execute(self) -> None:
        workers = await self._roster.list_workers()
        self.pool = capture_workers(workers, self._rng)
        self.report.initial_pool_size = len(self.pool)
        self.report.remaining_pool_size = len(self.pool)

        request = self.build_reboot_request()
        scope = self.config.kill_scope
        logger.info(
            "Live attrition starting: scope=%s workers=%d (of %d) wait_for_duration=%d",
            scope.value if scope else "zone",
            len(self.pool),
            len(workers),
            request.wait_for_duration,
        )
        await self._publish(
            EventType.ATTRITION_STARTED,
            scope=scope.value if scope else KillScope.ZONE.value,
            reboot=self.config.reboot,
            workers=len(self.pool),
        )

        if scope is not None:
            await self._broadcast_kill(scope, request)
        else:
            await self._kill_loop(request)

    def _send(self, worker: WorkerDescriptor, request: RebootRequest) -> None:
        logger.debug("Sending reboot request to %s (%s)", worker.address, worker.locality)
        self._roster.send_reboot(worker, request)

    def _kill_type(self) -> KillType:
        return KillType.REBOOT if self.config.reboot else KillType.KILL_INSTANTLY

    async def _broadcast_kill(self, scope: KillScope, request: RebootRequest) -> None:
        """Send the request to every worker located at the chosen scope value."""
        if not self.pool and not self.config.target_id:
            raise AttritionError("No killable workers in roster")

        self.state = AttritionState.ACTING
        target = resolve_target_id(self.pool, scope, self.config.target_id, _worker_locality)
        victims = select_targets(self.pool, scope, self.config.target_id, _worker_locality)
        logger.info("Assassination: %s %s (%d workers)", scope.value, target, len(victims))

        for worker in victims:
            self._send(worker, request)
            await self._publish(
                EventType.ATTRITION_REBOOT_REQUEST_SENT,
                address=worker.address,
                scope=scope.value,
                target=target,
            )

        self.report.record(
            KillRecord(
                scope=scope,
                identifier=target,
                kill_type=self._kill_type(),
                targets=[worker.locality for worker in victims],
            )
        )
        self.report.killed_count += len(victims)
        self.report.remaining_pool_size = len(self.pool) - len(victims)

    async def _kill_loop(self, request: RebootRequest) -> None:
        config = self.config
        while self.report.killed_count < config.machines_to_kill and len(self.pool) > config.machines_to_leave:
            logger.debug(
                "Worker kill begin: killed=%d machines_to_kill=%d machines_to_leave=%d workers=%d",
                self.report.killed_count,
                config.machines_to_kill,
                config.machines_to_leave,
                len(self.pool),
            )
            await self._fresh_read_gate()

            self.state = AttritionState.ACTING
            target = select_targets(self.pool, KillScope.ZONE, locality_of=_worker_locality)[0]
            logger.info(
                "Assassination: worker %s zone %s killed=%d workers=%d",
                target.address,
                target.locality.zone_id,
                self.report.killed_count,
                len(self.pool),
            )
            self._send(target, request)

            self.report.record(
                KillRecord(
                    scope=KillScope.ZONE,
                    identifier=target.locality.zone_id,
                    kill_type=self._kill_type(),
                    targets=[target.locality],
                )
            )
            self.report.killed_count += 1
            self.pool.pop()
            self.report.remaining_pool_size = len(self.pool)
            await self._publish(
                EventType.ATTRITION_REBOOT_REQUEST_SENT,
                address=target.address,
                scope=KillScope.ZONE.value,
                target=target.locality.zone_id,
            )
