"""
Attrition workload: the boundary between a test harness and a run.

Only client 0 performs attrition. The run is bounded by test_duration; when
the budget elapses first the run is cancelled and reported as TIMED_OUT,
which is a normal completion. Please-reboot errors raised by collaborators
(the controller killed its own host) become outcomes instead of failures.
Every other error propagates to the harness.
"""

import asyncio
import random
from dataclasses import dataclass

from attrition_engine.attrition.live import LiveAttritionScheduler
from attrition_engine.attrition.models import AttritionConfig, AttritionOutcome, RunReport
from attrition_engine.attrition.scheduler import AttritionScheduler, BaseAttritionScheduler
from attrition_engine.errors import AttritionError, PleaseRebootDeleteError, PleaseRebootError
from attrition_engine.interfaces import ClusterControl, KeyValueStore, TopologySource, WorkerRoster
from attrition_engine.logging import get_logger
from attrition_engine.runtime.event_bus import EventBus
from attrition_engine.runtime.run_context import generate_run_id

logger = get_logger(__name__)


@dataclass
class PerfMetric:
    """A named metric reported to the harness."""

    name: str
    value: float


class AttritionWorkload:
    """
    Harness-facing attrition workload.

    Args:
        config: Run options
        store: Transactional store of the system under test
        client_id: Harness client index; only client 0 runs attrition
        simulated: Target the simulated cluster (cluster + topology) rather
            than a live roster
    """

    def __init__(
        self,
        config: AttritionConfig,
        store: KeyValueStore,
        *,
        client_id: int = 0,
        simulated: bool = True,
        cluster: ClusterControl | None = None,
        topology: TopologySource | None = None,
        roster: WorkerRoster | None = None,
        rng: random.Random | None = None,
        event_bus: EventBus | None = None,
        run_id: str | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self.config = config.resolved(self._rng)
        self.client_id = client_id
        self.simulated = simulated
        self._store = store
        self._cluster = cluster
        self._topology = topology
        self._roster = roster
        self._event_bus = event_bus
        self.run_id = run_id or generate_run_id("attrition" if simulated else "live")
        self.scheduler: BaseAttritionScheduler | None = None
        self._report: RunReport | None = None

    def description(self) -> str:
        return "MachineAttritionWorkload"

    @property
    def report(self) -> RunReport | None:
        """Final report, or the live report of a run still in progress."""
        if self._report is not None:
            return self._report
        return self.scheduler.report if self.scheduler else None

    async def setup(self) -> None:
        pass

    def _build_scheduler(self) -> BaseAttritionScheduler:
        if self.simulated:
            if self._cluster is None or self._topology is None:
                raise AttritionError("Simulated attrition needs cluster control and a topology source")
            return AttritionScheduler(
                self.config,
                self._cluster,
                self._topology,
                self._store,
                rng=self._rng,
                event_bus=self._event_bus,
                run_id=self.run_id,
            )
        if self._roster is None:
            raise AttritionError("Live attrition needs a worker roster")
        return LiveAttritionScheduler(
            self.config,
            self._roster,
            self._store,
            rng=self._rng,
            event_bus=self._event_bus,
            run_id=self.run_id,
        )

    async def start(self) -> RunReport:
        """
        Run attrition within the time budget.

        Returns:
            Report whose outcome says how the run ended
        """
        if self.client_id != 0:
            report = RunReport(run_id=self.run_id, simulated=self.simulated)
            report.finish(
                AttritionOutcome.PLEASE_REBOOT if self.config.kill_self else AttritionOutcome.SKIPPED
            )
            self._report = report
            return report

        self.scheduler = self._build_scheduler()
        self._report = await self._run_within_budget(self.scheduler)
        return self._report

    async def _run_within_budget(self, scheduler: BaseAttritionScheduler) -> RunReport:
        try:
            return await asyncio.wait_for(scheduler.run(), timeout=self.config.test_duration)
        except asyncio.TimeoutError:
            logger.info(
                "Attrition time budget of %.2fs elapsed after %d kills",
                self.config.test_duration,
                scheduler.report.killed_count,
            )
            scheduler.report.finish(AttritionOutcome.TIMED_OUT)
        except PleaseRebootDeleteError:
            logger.warning("Controller host was killed with data loss during attrition")
            scheduler.report.finish(AttritionOutcome.PLEASE_REBOOT_DELETE)
        except PleaseRebootError:
            logger.warning("Controller host was killed during attrition")
            scheduler.report.finish(AttritionOutcome.PLEASE_REBOOT)
        return scheduler.report

    async def check(self) -> bool:
        """
        Wait for the most recent suppression window, if any, to close.
        """
        if isinstance(self.scheduler, AttritionScheduler):
            return await self.scheduler.suppression.wait_active()
        return True

    def get_metrics(self) -> list[PerfMetric]:
        report = self.report
        if report is None:
            return []
        metrics = [
            PerfMetric("Machines killed", float(report.killed_count)),
            PerfMetric("Machines remaining", float(report.remaining_pool_size)),
            PerfMetric("Suppression windows", float(report.suppression_windows)),
            PerfMetric("Maintenance marks", float(report.maintenance_marks)),
        ]
        for kill_type, count in sorted(report.kills_by_type().items()):
            metrics.append(PerfMetric(f"Kills {kill_type}", float(count)))
        return metrics
