"""
Attrition scheduler for simulated clusters.

Paces kill events over the run's time budget:

    mean_delay = test_duration / machines_to_kill

Each event waits a random fraction of the mean delay, optionally proves the
cluster can serve a read, kills the tail of the shuffled zone pool, then
waits out the rest of the mean delay together with any open suppression
window. Collective kill modes (datacenter, machine, datahall, process) are
a single event instead.

The outer time budget is applied by the caller (AttritionWorkload);
cancellation leaves the report with whatever was killed so far.
"""

import asyncio
import random
from abc import ABC, abstractmethod

from attrition_engine.attrition.decider import decide_action, decide_scoped_action
from attrition_engine.attrition.models import (
    AttritionConfig,
    AttritionOutcome,
    AttritionState,
    KillRecord,
    RunReport,
)
from attrition_engine.attrition.preflight import wait_for_read_version
from attrition_engine.attrition.selector import resolve_target_id, select_targets
from attrition_engine.attrition.suppression import HealthSuppressionCoordinator
from attrition_engine.attrition.topology import capture_pool, killable_members
from attrition_engine.domain import KillAction, KillScope, KillType, Locality
from attrition_engine.errors import AttritionError, PleaseRebootError
from attrition_engine.interfaces import ClusterControl, KeyValueStore, TopologySource
from attrition_engine.logging import clear_run_id, get_logger, set_run_id
from attrition_engine.runtime.event_bus import Event, EventBus, EventType, get_event_bus
from attrition_engine.runtime.run_context import generate_run_id

logger = get_logger(__name__)

# Upper bounds for the random durations of health signals, in seconds
MAINTENANCE_MAX_SECONDS = 20.0
SUPPRESSION_MAX_SECONDS = 5.0


class BaseAttritionScheduler(ABC):
    """
    Shared run lifecycle for simulated and live attrition.

    Subclasses implement _execute(); run() wraps it with state tracking,
    run-id log correlation and the kill_self outcome.
    """

    def __init__(
        self,
        config: AttritionConfig,
        store: KeyValueStore,
        *,
        simulated: bool,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        run_id: str | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self.config = config.resolved(self._rng)
        self._store = store
        self._event_bus = event_bus or get_event_bus()
        self.run_id = run_id or generate_run_id("attrition" if simulated else "live")
        self.state = AttritionState.IDLE
        self.report = RunReport(run_id=self.run_id, simulated=simulated)

    @property
    def killed_count(self) -> int:
        return self.report.killed_count

    async def _publish(self, event_type: EventType, **data: object) -> None:
        await self._event_bus.publish(Event(type=event_type, data=dict(data), run_id=self.run_id))

    async def _fresh_read_gate(self) -> None:
        if self.config.wait_for_version:
            self.state = AttritionState.PREFLIGHT
            version = await wait_for_read_version(self._store)
            logger.debug("Fresh read version %d acquired before kill", version)

    @abstractmethod
    async def _execute(self) -> None:
        """Perform the kills."""
        pass

    async def run(self) -> RunReport:
        """
        Execute the attrition run.

        Returns:
            Report with outcome COMPLETED, or PLEASE_REBOOT when kill_self
            is configured (no kill follows that outcome)

        Raises:
            asyncio.CancelledError: Outer time budget elapsed (state ABORTED)
            PleaseRebootError: A kill took down the controller's own host;
                the kill is already in the report and no error is recorded
        """
        if self.state != AttritionState.IDLE:
            raise AttritionError(f"Attrition run {self.run_id} already started")

        set_run_id(self.run_id)
        self.state = AttritionState.RUNNING
        try:
            await self._execute()
        except (PleaseRebootError, asyncio.CancelledError):
            self.state = AttritionState.ABORTED
            raise
        except Exception as e:
            self.state = AttritionState.ABORTED
            self.report.error = str(e)
            raise
        finally:
            clear_run_id()

        self.state = AttritionState.DONE
        if self.config.kill_self:
            logger.warning("Attrition run %s finished, controller host must restart", self.run_id)
            self.report.finish(AttritionOutcome.PLEASE_REBOOT)
        else:
            self.report.finish(AttritionOutcome.COMPLETED)

        await self._publish(
            EventType.ATTRITION_FINISHED,
            outcome=self.report.outcome.value if self.report.outcome else None,
            killed=self.report.killed_count,
        )
        return self.report


class AttritionScheduler(BaseAttritionScheduler):
    """
    Attrition against a simulated cluster.

    The cluster control and topology source are injected; the zone pool is
    captured once when the run starts.
    """

    def __init__(
        self,
        config: AttritionConfig,
        cluster: ClusterControl,
        topology: TopologySource,
        store: KeyValueStore,
        *,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        run_id: str | None = None,
    ) -> None:
        super().__init__(
            config,
            store,
            simulated=True,
            rng=rng,
            event_bus=event_bus,
            run_id=run_id,
        )
        self._cluster = cluster
        self._topology = topology
        self.pool: list[Locality] = []
        # Every killable process, for collective kills below zone level
        self.members: list[Locality] = []
        self.suppression = HealthSuppressionCoordinator(store, self._event_bus, self.run_id)

    async def _execute(self) -> None:
        self.pool = capture_pool(self._topology, self._rng)
        self.members = killable_members(self._topology.list_members())
        self.report.initial_pool_size = len(self.pool)
        self.report.remaining_pool_size = len(self.pool)

        scope = self.config.kill_scope
        mean_delay = self.config.mean_delay
        logger.info(
            "Attrition starting: scope=%s reboot=%s machines_to_kill=%d "
            "machines_to_leave=%d pool=%d mean_delay=%.3f",
            scope.value if scope else "zone",
            self.config.reboot,
            self.config.machines_to_kill,
            self.config.machines_to_leave,
            len(self.pool),
            mean_delay,
        )
        await self._publish(
            EventType.ATTRITION_STARTED,
            scope=scope.value if scope else KillScope.ZONE.value,
            reboot=self.config.reboot,
            machines_to_kill=self.config.machines_to_kill,
            machines_to_leave=self.config.machines_to_leave,
            mean_delay=mean_delay,
        )

        if scope is not None:
            await self._collective_kill(scope, mean_delay)
        else:
            await self._attrition_loop(mean_delay)

    async def _collective_kill(self, scope: KillScope, mean_delay: float) -> None:
        """Single catastrophic event against every member at one scope value."""
        self.state = AttritionState.DELAYING
        await asyncio.sleep(self._rng.random() * mean_delay)

        if not self.pool and not self.config.target_id:
            raise AttritionError("No killable members in cluster")

        self.state = AttritionState.ACTING
        target = resolve_target_id(self.pool, scope, self.config.target_id)
        victims = [m for m in self.members if target is not None and m.get(scope) == target]
        action = decide_scoped_action(self.config, self._rng)

        logger.info(
            "Assassination: %s %s with %s (%d members, reboot=%s)",
            scope.value,
            target,
            action,
            len(victims),
            self.config.reboot,
        )
        try:
            self._cluster.kill_scope(scope, target, action.kill_type)
        finally:
            self.report.record(
                KillRecord(scope=scope, identifier=target, kill_type=action.kill_type, targets=victims)
            )
            self.report.killed_count += len(victims)
            surviving_zones = {m.zone_id for m in self.members if m not in victims}
            self.report.remaining_pool_size = len([z for z in self.pool if z.zone_id in surviving_zones])
        await self._publish(
            EventType.ATTRITION_ASSASSINATION,
            scope=scope.value,
            target=target,
            kill_type=action.kill_type.value,
            members=len(victims),
        )

    async def _attrition_loop(self, mean_delay: float) -> None:
        config = self.config
        delay_before_kill = self._rng.random() * mean_delay

        while self.report.killed_count < config.machines_to_kill and len(self.pool) > config.machines_to_leave:
            logger.debug(
                "Worker kill begin: killed=%d machines_to_kill=%d machines_to_leave=%d machines=%d",
                self.report.killed_count,
                config.machines_to_kill,
                config.machines_to_leave,
                len(self.pool),
            )
            await self._publish(
                EventType.ATTRITION_WORKER_KILL_BEGIN,
                killed=self.report.killed_count,
                machines=len(self.pool),
            )

            self.state = AttritionState.DELAYING
            await asyncio.sleep(delay_before_kill)

            await self._fresh_read_gate()

            self.state = AttritionState.ACTING
            target = select_targets(self.pool, KillScope.ZONE)[0]
            await self._signal_health(target)

            action = decide_action(config, self._rng)
            logger.info(
                "Assassination: zone %s (%s) with %s killed=%d machines=%d replace=%s",
                target.zone_id,
                target,
                action,
                self.report.killed_count,
                len(self.pool),
                config.replacement,
            )
            try:
                self._issue(target, action)
            finally:
                self.report.record(
                    KillRecord(
                        scope=KillScope.ZONE,
                        identifier=target.zone_id,
                        kill_type=action.kill_type,
                        all_processes=action.all_processes,
                        targets=[target],
                    )
                )
                self.report.killed_count += 1
                if not config.replacement:
                    self.pool.pop()
                self.report.remaining_pool_size = len(self.pool)
            await self._publish(
                EventType.ATTRITION_ASSASSINATION,
                scope=KillScope.ZONE.value,
                target=target.zone_id,
                kill_type=action.kill_type.value,
                members=1,
            )

            self.state = AttritionState.COOLING
            await asyncio.gather(
                asyncio.sleep(mean_delay - delay_before_kill),
                self.suppression.wait_active(),
            )
            delay_before_kill = self._rng.random() * mean_delay

    async def _signal_health(self, target: Locality) -> None:
        """
        Rarely mark the target for maintenance, or even more rarely open a
        suppression window, before it is killed.
        """
        if self._rng.random() < self.config.maintenance_probability:
            if target.zone_id is None:
                return
            if await self.suppression.mark_zone_for_maintenance(
                target.zone_id, self._rng.random() * MAINTENANCE_MAX_SECONDS
            ):
                self.report.maintenance_marks += 1
        elif self._rng.random() < self.config.suppression_probability:
            self.suppression.suppress_failures_for(self._rng.random() * SUPPRESSION_MAX_SECONDS)
            self.report.suppression_windows += 1

    def _issue(self, target: Locality, action: KillAction) -> None:
        if action.kill_type == KillType.REBOOT_PROCESS:
            self._cluster.reboot_zone(target.zone_id, action.all_processes)
        else:
            self._cluster.kill_scope(KillScope.ZONE, target.zone_id, action.kill_type)
