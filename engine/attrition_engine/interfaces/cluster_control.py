"""
ClusterControl and TopologySource interfaces.

Define the contract with the component that actually kills or reboots
cluster members, and with the component that lists them. Both are injected
into the attrition scheduler; there is no process-wide simulator handle.
"""

from abc import ABC, abstractmethod

from attrition_engine.domain import KillScope, KillType, ProcessInfo


class ClusterControl(ABC):
    """
    Abstract base class for kill/reboot primitives.

    Calls are treated as instantaneous from the controller's viewpoint.
    Implementations may raise PleaseRebootError (or its delete variant) when
    the controller's own host is among the casualties.
    """

    @abstractmethod
    def kill_scope(self, scope: KillScope, identifier: str | None, kill_type: KillType) -> None:
        """
        Apply a kill to every member located at the given scope value.

        Args:
            scope: Topology level (zone, machine, datacenter, ...)
            identifier: Scope value to match
            kill_type: Kind of failure to induce
        """
        pass

    @abstractmethod
    def reboot_zone(self, zone_id: str | None, all_processes: bool) -> None:
        """
        Reboot processes within a zone.

        Args:
            zone_id: Zone to reboot in
            all_processes: Reboot every process in the zone instead of one
        """
        pass


class TopologySource(ABC):
    """Lists the processes currently known to the cluster."""

    @abstractmethod
    def list_members(self) -> list[ProcessInfo]:
        """Return every known process, failed ones included."""
        pass
