"""
Locality domain model.

A locality places a cluster member in the topology: the zone it fails
together with, and the machine, datacenter, data hall and process it
belongs to. Every scope is optional.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class KillScope(str, Enum):
    """Level of topology at which a kill is targeted."""

    ZONE = "zone"
    MACHINE = "machine"
    DATACENTER = "datacenter"
    DATAHALL = "datahall"
    PROCESS = "process"


class ProcessClass(str, Enum):
    """Role class a cluster process was started with."""

    UNSET = "unset"
    STORAGE = "storage"
    TRANSACTION = "transaction"
    STATELESS = "stateless"
    TESTER = "tester"


class Locality(BaseModel):
    """
    Topology identity of a cluster member.

    Frozen so localities can be used in sets and as dict keys.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    zone_id: str | None = Field(default=None, alias="zoneId")
    machine_id: str | None = Field(default=None, alias="machineId")
    dc_id: str | None = Field(default=None, alias="dcId")
    data_hall_id: str | None = Field(default=None, alias="dataHallId")
    process_id: str | None = Field(default=None, alias="processId")

    def get(self, scope: KillScope) -> str | None:
        """Return this member's identifier at the given scope."""
        if scope == KillScope.ZONE:
            return self.zone_id
        if scope == KillScope.MACHINE:
            return self.machine_id
        if scope == KillScope.DATACENTER:
            return self.dc_id
        if scope == KillScope.DATAHALL:
            return self.data_hall_id
        return self.process_id

    def __str__(self) -> str:
        parts = [
            f"{name}={value}"
            for name, value in (
                ("zone", self.zone_id),
                ("machine", self.machine_id),
                ("dc", self.dc_id),
                ("hall", self.data_hall_id),
                ("process", self.process_id),
            )
            if value is not None
        ]
        return ",".join(parts) or "<empty>"
