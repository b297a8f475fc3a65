"""
Cluster member descriptors.

ProcessInfo describes a process known to a topology source (simulated
cluster). WorkerDescriptor describes a live worker as reported by the
cluster controller's roster endpoint.
"""

from pydantic import BaseModel, ConfigDict, Field

from attrition_engine.domain.locality import Locality, ProcessClass


class ProcessInfo(BaseModel):
    """A process in a (simulated) cluster."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="Server", description="Process role name")
    address: str = Field(..., description="Network address of the process")
    locality: Locality
    process_class: ProcessClass = Field(default=ProcessClass.UNSET, alias="processClass")
    failed: bool = False

    @property
    def is_server(self) -> bool:
        return self.name == "Server"


class WorkerDescriptor(BaseModel):
    """A live worker from the cluster controller roster."""

    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(..., description="host:port of the worker control endpoint")
    locality: Locality
    process_class: ProcessClass = Field(default=ProcessClass.UNSET, alias="processClass")

    @property
    def is_tester(self) -> bool:
        return self.process_class == ProcessClass.TESTER


class RebootRequest(BaseModel):
    """
    Reboot request sent to a live worker.

    wait_for_duration is the number of seconds the worker stays down before
    restarting.
    """

    model_config = ConfigDict(populate_by_name=True)

    wait_for_duration: int = Field(default=0, ge=0, alias="waitForDuration")
