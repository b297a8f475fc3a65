"""
Tests for the simulated-cluster attrition scheduler.
"""

import asyncio

import pytest

from attrition_engine.attrition.models import (
    AttritionConfig,
    AttritionOutcome,
    AttritionState,
)
from attrition_engine.attrition.scheduler import AttritionScheduler
from attrition_engine.attrition.suppression import HEALTHY_ZONE_KEY
from attrition_engine.attrition.workload import AttritionWorkload
from attrition_engine.domain import KillScope, KillType, ProcessClass
from attrition_engine.errors import AttritionError, PleaseRebootError
from attrition_engine.runtime.event_bus import EventBus, EventType
from attrition_engine.sim.cluster import SimulatedCluster
from attrition_engine.store.memory import InMemoryStore
from tests.fixtures.randomness import ConstantRandom, FixedOrderRandom
from tests.fixtures.sim_fixtures import EventRecorder, HangingReadStore, make_process

DESTRUCTIVE_TYPES = {KillType.REBOOT_AND_DELETE, KillType.KILL_INSTANTLY, KillType.INJECT_FAULTS}


def make_config(**options) -> AttritionConfig:
    base = {
        "killDc": False,
        "replacement": False,
        "maintenanceProbability": 0.0,
        "suppressionProbability": 0.0,
    }
    base.update(options)
    return AttritionConfig.from_options(base)


@pytest.fixture
def abc_cluster() -> SimulatedCluster:
    """Three single-process zones A, B, C."""
    return SimulatedCluster(
        [make_process("A", "dc0"), make_process("B", "dc0"), make_process("C", "dc1")]
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(initial_backoff=0.001, max_backoff=0.004)


def make_scheduler(config, cluster, store, rng=None, bus=None) -> AttritionScheduler:
    return AttritionScheduler(
        config,
        cluster,
        cluster,
        store,
        rng=rng or FixedOrderRandom(7),
        event_bus=bus or EventBus(),
    )


class TestAttritionLoop:
    """Per-zone attrition."""

    @pytest.mark.asyncio
    async def test_kills_until_count_reached(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=2, machinesToLeave=1, testDuration=0.4)
        scheduler = make_scheduler(config, abc_cluster, store)

        report = await scheduler.run()

        assert report.outcome == AttritionOutcome.COMPLETED
        assert report.killed_count == 2
        assert report.initial_pool_size == 3
        assert report.remaining_pool_size == 1
        # Unshuffled pool is consumed from its tail
        assert [k.identifier for k in report.kills] == ["C", "B"]
        assert [loc.zone_id for loc in scheduler.pool] == ["A"]
        assert all(k.kill_type in DESTRUCTIVE_TYPES for k in report.kills)
        assert all(k.scope == KillScope.ZONE for k in report.kills)
        assert scheduler.state == AttritionState.DONE

    @pytest.mark.asyncio
    async def test_kill_actions_reach_cluster(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=2, testDuration=0.4)
        report = await make_scheduler(config, abc_cluster, store).run()

        assert [k.locality.zone_id for k in abc_cluster.history] == ["C", "B"]
        assert [k.kill_type for k in abc_cluster.history] == [k.kill_type for k in report.kills]

    @pytest.mark.asyncio
    async def test_machines_to_leave_bounds_kills(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=5, machinesToLeave=2, testDuration=1.0)
        report = await make_scheduler(config, abc_cluster, store).run()

        assert report.outcome == AttritionOutcome.COMPLETED
        assert report.killed_count == 1
        assert report.remaining_pool_size == 2

    @pytest.mark.asyncio
    async def test_empty_pool_completes_without_kills(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster([make_process("t0", process_class=ProcessClass.TESTER)])
        report = await make_scheduler(make_config(testDuration=0.1), cluster, store).run()

        assert report.outcome == AttritionOutcome.COMPLETED
        assert report.killed_count == 0
        assert cluster.history == []

    @pytest.mark.asyncio
    async def test_testers_never_targeted(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster.build(datacenters=1, machines_per_dc=2, testers=2)
        config = make_config(machinesToKill=3, machinesToLeave=0, testDuration=0.3)
        report = await make_scheduler(config, cluster, store).run()

        assert report.killed_count == 2
        assert all(not k.locality.zone_id.startswith("tester") for k in cluster.history)

    @pytest.mark.asyncio
    async def test_reboot_mode_actions(self, abc_cluster: SimulatedCluster, store: InMemoryStore) -> None:
        config = make_config(machinesToKill=2, testDuration=0.4, reboot=True)
        report = await make_scheduler(config, abc_cluster, store).run()

        assert report.killed_count == 2
        assert {k.kill_type for k in report.kills} <= {KillType.REBOOT, KillType.REBOOT_PROCESS}
        assert all(not p.failed for p in abc_cluster.processes)

    @pytest.mark.asyncio
    async def test_replacement_keeps_pool(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster([make_process("A"), make_process("B")])
        config = make_config(
            machinesToKill=3, machinesToLeave=1, testDuration=0.6, reboot=True, replacement=True
        )
        scheduler = make_scheduler(config, cluster, store)
        report = await scheduler.run()

        assert report.killed_count == 3
        assert report.remaining_pool_size == 2
        assert [k.identifier for k in report.kills] == ["B", "B", "B"]

    @pytest.mark.asyncio
    async def test_fresh_read_before_each_kill(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=2, testDuration=0.4, waitForVersion=True)
        await make_scheduler(config, abc_cluster, store).run()
        assert store.read_version_count == 2

    @pytest.mark.asyncio
    async def test_no_fresh_read_by_default(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        await make_scheduler(make_config(testDuration=0.2), abc_cluster, store).run()
        assert store.read_version_count == 0

    @pytest.mark.asyncio
    async def test_kill_self_requests_reboot(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=1, testDuration=0.1, killSelf=True)
        report = await make_scheduler(config, abc_cluster, store).run()

        assert report.killed_count == 1
        assert report.outcome == AttritionOutcome.PLEASE_REBOOT

    @pytest.mark.asyncio
    async def test_run_only_once(self, abc_cluster: SimulatedCluster, store: InMemoryStore) -> None:
        scheduler = make_scheduler(make_config(machinesToKill=1, testDuration=0.1), abc_cluster, store)
        await scheduler.run()
        with pytest.raises(AttritionError, match="already started"):
            await scheduler.run()


class TestHealthSignals:
    """Maintenance marks and suppression windows around kills."""

    @pytest.mark.asyncio
    async def test_maintenance_mark_before_kill(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=1, testDuration=0.2, maintenanceProbability=1.0)
        scheduler = make_scheduler(config, abc_cluster, store, rng=ConstantRandom(0.01))
        report = await scheduler.run()

        assert report.maintenance_marks == 1
        assert report.suppression_windows == 0
        marker = await scheduler.suppression.read_marker()
        assert marker.zone_id == "C"

    @pytest.mark.asyncio
    async def test_suppression_window_waited_out(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        config = make_config(machinesToKill=2, testDuration=0.2, suppressionProbability=1.0)
        scheduler = make_scheduler(config, abc_cluster, store, rng=ConstantRandom(0.01))
        report = await scheduler.run()

        assert report.suppression_windows == 2
        # Cooling waited for the active window; the earlier one was not cancelled
        await scheduler.suppression.wait_all()
        assert store.peek(HEALTHY_ZONE_KEY) is None

    @pytest.mark.asyncio
    async def test_window_survives_cancelled_run(
        self, abc_cluster: SimulatedCluster, store: InMemoryStore
    ) -> None:
        # Window lasts 0.05s (0.01 * 5s); budget expires while cooling waits on it
        config = make_config(machinesToKill=1, testDuration=0.02, suppressionProbability=1.0)
        workload = AttritionWorkload(
            config,
            store,
            cluster=abc_cluster,
            topology=abc_cluster,
            rng=ConstantRandom(0.01),
            event_bus=EventBus(),
        )
        report = await workload.start()

        assert report.outcome == AttritionOutcome.TIMED_OUT
        assert report.killed_count == 1
        assert workload.scheduler.state == AttritionState.ABORTED
        window = workload.scheduler.suppression.active_window
        assert window is not None and not window.done()

        assert await workload.check() is True
        assert store.peek(HEALTHY_ZONE_KEY) is None


class TestCollectiveKill:
    """Datacenter / machine / datahall / process modes."""

    @pytest.mark.asyncio
    async def test_datacenter_reboot_single_event(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster.build(datacenters=2, machines_per_dc=3)
        config = make_config(machinesToKill=10, testDuration=1.0, killDc=True, reboot=True)
        scheduler = make_scheduler(config, cluster, store)
        report = await scheduler.run()

        assert report.outcome == AttritionOutcome.COMPLETED
        assert len(report.kills) == 1
        kill = report.kills[0]
        assert kill.scope == KillScope.DATACENTER
        assert kill.kill_type == KillType.REBOOT
        # Tail of the sorted pool is dc1-m2
        assert kill.identifier == "dc1"
        assert report.killed_count == 3
        assert {k.locality.dc_id for k in cluster.history} == {"dc1"}
        assert len(cluster.history) == 3
        assert all(k.kill_type == KillType.REBOOT for k in cluster.history)

    @pytest.mark.asyncio
    async def test_explicit_target(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster.build(datacenters=2, machines_per_dc=3)
        config = make_config(testDuration=0.1, killDc=True, targetId="dc0")
        report = await make_scheduler(config, cluster, store).run()

        assert report.kills[0].identifier == "dc0"
        assert report.kills[0].kill_type in DESTRUCTIVE_TYPES
        assert {k.locality.dc_id for k in cluster.history} == {"dc0"}

    @pytest.mark.asyncio
    async def test_machine_scope(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster.build(datacenters=1, machines_per_dc=2, processes_per_machine=2)
        config = make_config(testDuration=0.1, killMachine=True, reboot=True)
        report = await make_scheduler(config, cluster, store).run()

        assert report.kills[0].scope == KillScope.MACHINE
        assert report.kills[0].identifier == "dc0-m1"
        assert len(cluster.history) == 2
        assert report.killed_count == 2
        assert report.remaining_pool_size == 1

    @pytest.mark.asyncio
    async def test_targeted_process_not_providing_zone_locality(self, store: InMemoryStore) -> None:
        # The zone pool keeps dc0-m0-p1 for zone dc0-m0
        cluster = SimulatedCluster.build(datacenters=1, machines_per_dc=2, processes_per_machine=2)
        config = make_config(testDuration=0.1, killProcess=True, reboot=True, targetId="dc0-m0-p0")
        report = await make_scheduler(config, cluster, store).run()

        assert [k.address for k in cluster.history] == ["10.0.0.1:4500"]
        assert report.killed_count == len(cluster.history) == 1
        kill = report.kills[0]
        assert kill.scope == KillScope.PROCESS
        assert [t.process_id for t in kill.targets] == ["dc0-m0-p0"]
        # The other process keeps its zone in the pool
        assert report.remaining_pool_size == report.initial_pool_size == 2

    @pytest.mark.asyncio
    async def test_controller_zone_in_collective_kill_recorded(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster.build(datacenters=2, machines_per_dc=2, controller_zone="dc1-m0")
        config = make_config(testDuration=0.1, killDc=True, reboot=True)
        scheduler = make_scheduler(config, cluster, store)

        with pytest.raises(PleaseRebootError):
            await scheduler.run()

        assert scheduler.report.killed_count == 2
        assert scheduler.report.kills[0].identifier == "dc1"
        assert scheduler.report.error is None

    @pytest.mark.asyncio
    async def test_empty_pool_is_an_error(self, store: InMemoryStore) -> None:
        cluster = SimulatedCluster([])
        scheduler = make_scheduler(make_config(testDuration=0.1, killDc=True), cluster, store)

        with pytest.raises(AttritionError, match="No killable members"):
            await scheduler.run()
        assert scheduler.state == AttritionState.ABORTED
        assert scheduler.report.error is not None


class TestTraceEvents:
    """Trace events published during a run."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, abc_cluster: SimulatedCluster, store: InMemoryStore) -> None:
        bus = EventBus()
        recorder = EventRecorder()
        await bus.subscribe(None, recorder)

        config = make_config(machinesToKill=2, testDuration=0.2)
        scheduler = make_scheduler(config, abc_cluster, store, bus=bus)
        await scheduler.run()

        assert recorder.types[0] == EventType.ATTRITION_STARTED
        assert recorder.types[-1] == EventType.ATTRITION_FINISHED
        assert len(recorder.of(EventType.ATTRITION_WORKER_KILL_BEGIN)) == 2
        assert len(recorder.of(EventType.ATTRITION_ASSASSINATION)) == 2
        assert all(e.run_id == scheduler.run_id for e in recorder.events)
        assert recorder.of(EventType.ATTRITION_FINISHED)[0].data["killed"] == 2


class TestTimeBudget:
    """Outer time budget."""

    @pytest.mark.asyncio
    async def test_budget_elapsed_after_one_kill(self, abc_cluster: SimulatedCluster) -> None:
        # Reads stop being served after the first kill's fresh-read gate
        store = HangingReadStore(serve_reads=1)
        config = make_config(machinesToKill=2, testDuration=0.3, waitForVersion=True)
        workload = AttritionWorkload(
            config,
            store,
            cluster=abc_cluster,
            topology=abc_cluster,
            rng=FixedOrderRandom(7),
            event_bus=EventBus(),
        )

        report = await workload.start()

        assert report.outcome == AttritionOutcome.TIMED_OUT
        assert report.killed_count == 1
        assert report.error is None
        assert report.finished_at is not None

    @pytest.mark.asyncio
    async def test_cancelled_run_is_aborted(self, abc_cluster: SimulatedCluster) -> None:
        store = HangingReadStore(serve_reads=0)
        config = make_config(testDuration=0.1, waitForVersion=True)
        scheduler = make_scheduler(config, abc_cluster, store)

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert scheduler.state == AttritionState.ABORTED
        assert scheduler.report.killed_count == 0
