"""
Simulated cluster.

An in-process cluster that implements both TopologySource and
ClusterControl. Every kill is recorded so runs can be inspected after the
fact. When the controller's own zone is among the casualties the kill raises
a please-reboot error, like a real host losing its test controller.
"""

import random
from dataclasses import dataclass, field
from datetime import UTC, datetime

from attrition_engine.domain import KillScope, KillType, Locality, ProcessClass, ProcessInfo
from attrition_engine.errors import PleaseRebootDeleteError, PleaseRebootError
from attrition_engine.interfaces import ClusterControl, TopologySource
from attrition_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SimulatedKill:
    """One process affected by one kill."""

    address: str
    locality: Locality
    kill_type: KillType
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


class SimulatedCluster(ClusterControl, TopologySource):
    """
    In-process cluster of ProcessInfo entries.

    KILL_INSTANTLY marks processes failed. Reboots, data deletion and fault
    injection leave them running (they come back) but are recorded.
    """

    def __init__(
        self,
        processes: list[ProcessInfo],
        controller_zone: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.processes = processes
        self.controller_zone = controller_zone
        self._rng = rng or random.Random()
        self.history: list[SimulatedKill] = []
        self.reboot_counts: dict[str, int] = {}
        self.deleted: set[str] = set()
        self.faulty: set[str] = set()

    @classmethod
    def build(
        cls,
        datacenters: int = 2,
        machines_per_dc: int = 3,
        processes_per_machine: int = 1,
        testers: int = 1,
        controller_zone: str | None = None,
        rng: random.Random | None = None,
    ) -> "SimulatedCluster":
        """
        Generate a regular topology.

        Zone ids equal machine ids; machines alternate between two data
        halls per datacenter. Testers live in their own zone.
        """
        processes: list[ProcessInfo] = []
        port = 4500
        for dc in range(datacenters):
            for m in range(machines_per_dc):
                machine_id = f"dc{dc}-m{m}"
                for p in range(processes_per_machine):
                    processes.append(
                        ProcessInfo(
                            address=f"10.{dc}.{m}.1:{port + p}",
                            locality=Locality(
                                zone_id=machine_id,
                                machine_id=machine_id,
                                dc_id=f"dc{dc}",
                                data_hall_id=f"dc{dc}-hall{m % 2}",
                                process_id=f"{machine_id}-p{p}",
                            ),
                            process_class=ProcessClass.STORAGE,
                        )
                    )
        for t in range(testers):
            processes.append(
                ProcessInfo(
                    address=f"10.255.{t}.1:{port}",
                    locality=Locality(zone_id=f"tester{t}", machine_id=f"tester{t}", process_id=f"tester{t}"),
                    process_class=ProcessClass.TESTER,
                )
            )
        return cls(processes, controller_zone=controller_zone, rng=rng)

    def list_members(self) -> list[ProcessInfo]:
        return list(self.processes)

    def alive(self) -> list[ProcessInfo]:
        return [p for p in self.processes if not p.failed]

    def kills_of(self, kill_type: KillType) -> list[SimulatedKill]:
        return [k for k in self.history if k.kill_type == kill_type]

    def _apply(self, process: ProcessInfo, kill_type: KillType) -> None:
        if kill_type == KillType.KILL_INSTANTLY:
            process.failed = True
        elif kill_type == KillType.REBOOT_AND_DELETE:
            self.deleted.add(process.address)
            self.reboot_counts[process.address] = self.reboot_counts.get(process.address, 0) + 1
        elif kill_type == KillType.INJECT_FAULTS:
            self.faulty.add(process.address)
        else:
            self.reboot_counts[process.address] = self.reboot_counts.get(process.address, 0) + 1
        self.history.append(SimulatedKill(process.address, process.locality, kill_type))

    def _check_controller(self, victims: list[ProcessInfo], kill_type: KillType) -> None:
        if self.controller_zone is None or kill_type == KillType.INJECT_FAULTS:
            return
        if any(p.locality.zone_id == self.controller_zone for p in victims):
            if kill_type == KillType.REBOOT_AND_DELETE:
                raise PleaseRebootDeleteError()
            raise PleaseRebootError()

    def kill_scope(self, scope: KillScope, identifier: str | None, kill_type: KillType) -> None:
        if identifier is None:
            logger.warning("Ignoring %s kill with no %s identifier", kill_type.value, scope.value)
            return
        victims = [p for p in self.alive() if p.locality.get(scope) == identifier]
        logger.info("Simulated %s of %s %s: %d processes", kill_type.value, scope.value, identifier, len(victims))
        for process in victims:
            self._apply(process, kill_type)
        self._check_controller(victims, kill_type)

    def reboot_zone(self, zone_id: str | None, all_processes: bool) -> None:
        candidates = [p for p in self.alive() if p.locality.zone_id == zone_id]
        if not candidates:
            return
        victims = candidates if all_processes else [self._rng.choice(candidates)]
        for process in victims:
            self._apply(process, KillType.REBOOT_PROCESS)
        self._check_controller(victims, KillType.REBOOT_PROCESS)
