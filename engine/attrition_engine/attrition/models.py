"""
Attrition run models.

All models are Pydantic-based for validation and serialization.
"""

import random
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from attrition_engine.domain import KillScope, KillType, Locality
from attrition_engine.errors import ConfigurationError

# Probability that killDc is enabled when the option is not given
DEFAULT_KILL_DC_PROBABILITY = 0.25
# Probability that replacement is enabled for reboot runs when not given
DEFAULT_REPLACEMENT_PROBABILITY = 0.5


class AttritionConfig(BaseModel):
    """
    Options for a single attrition run.

    Accepts both snake_case names and the workload option names
    (machinesToKill, killDc, ...). Unknown options are rejected.
    kill_dc and replacement default to None here and are drawn once by
    from_options(); a config handed to a scheduler always has them set.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    machines_to_kill: int = Field(default=2, ge=1, alias="machinesToKill")
    machines_to_leave: int = Field(default=1, ge=0, alias="machinesToLeave")
    test_duration: float = Field(default=10.0, gt=0, alias="testDuration")
    suspend_duration: float = Field(default=1.0, ge=0, alias="suspendDuration")
    reboot: bool = False
    kill_dc: bool | None = Field(default=None, alias="killDc")
    kill_machine: bool = Field(default=False, alias="killMachine")
    kill_datahall: bool = Field(default=False, alias="killDatahall")
    kill_process: bool = Field(default=False, alias="killProcess")
    kill_self: bool = Field(default=False, alias="killSelf")
    target_id: str | None = Field(default=None, alias="targetId")
    replacement: bool | None = None
    wait_for_version: bool = Field(default=False, alias="waitForVersion")
    allow_fault_injection: bool = Field(default=True, alias="allowFaultInjection")
    maintenance_probability: float = Field(
        default=0.01, ge=0.0, le=1.0, alias="maintenanceProbability"
    )
    suppression_probability: float = Field(
        default=0.005, ge=0.0, le=1.0, alias="suppressionProbability"
    )

    @field_validator("target_id")
    @classmethod
    def empty_target_is_none(cls, v: str | None) -> str | None:
        return v or None

    @classmethod
    def from_options(
        cls,
        options: Mapping[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> "AttritionConfig":
        """
        Build a resolved config from a workload option mapping.

        Args:
            options: Option name -> value (names or aliases)
            rng: Random source for the randomised defaults

        Raises:
            ConfigurationError: Unknown or malformed option
        """
        rng = rng or random.Random()
        try:
            config = cls.model_validate(dict(options or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid attrition options: {e}") from e
        return config.resolved(rng)

    def resolved(self, rng: random.Random) -> "AttritionConfig":
        """Return a copy with kill_dc and replacement drawn if unset."""
        update: dict[str, Any] = {}
        if self.kill_dc is None:
            update["kill_dc"] = rng.random() < DEFAULT_KILL_DC_PROBABILITY
        if self.replacement is None:
            update["replacement"] = self.reboot and rng.random() < DEFAULT_REPLACEMENT_PROBABILITY
        return self.model_copy(update=update) if update else self

    @property
    def mean_delay(self) -> float:
        """Mean time between kill events."""
        return self.test_duration / self.machines_to_kill

    @property
    def kill_scope(self) -> KillScope | None:
        """
        Collective kill scope, or None for the per-zone attrition loop.

        Datacenter wins over machine, then datahall, then process.
        """
        if self.kill_dc:
            return KillScope.DATACENTER
        if self.kill_machine:
            return KillScope.MACHINE
        if self.kill_datahall:
            return KillScope.DATAHALL
        if self.kill_process:
            return KillScope.PROCESS
        return None


class AttritionOutcome(str, Enum):
    """
    How an attrition run ended.

    TIMED_OUT is a normal completion: attrition is best-effort within its
    time budget. The PLEASE_REBOOT kinds ask the harness to restart the
    controller's host.
    """

    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    PLEASE_REBOOT = "PLEASE_REBOOT"
    PLEASE_REBOOT_DELETE = "PLEASE_REBOOT_DELETE"
    SKIPPED = "SKIPPED"

    @property
    def is_restart(self) -> bool:
        return self in (AttritionOutcome.PLEASE_REBOOT, AttritionOutcome.PLEASE_REBOOT_DELETE)


class AttritionState(str, Enum):
    """
    Scheduler state machine.

    IDLE -> RUNNING -> (DELAYING -> PREFLIGHT -> ACTING -> COOLING)* -> DONE
    ABORTED when the run is cancelled or fails.
    """

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    DELAYING = "DELAYING"
    PREFLIGHT = "PREFLIGHT"
    ACTING = "ACTING"
    COOLING = "COOLING"
    DONE = "DONE"
    ABORTED = "ABORTED"


class KillRecord(BaseModel):
    """One issued kill."""

    scope: KillScope
    identifier: str | None = None
    kill_type: KillType
    all_processes: bool = False
    targets: list[Locality] = Field(default_factory=list)
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RunReport(BaseModel):
    """Progress and result of an attrition run."""

    run_id: str
    simulated: bool = True
    outcome: AttritionOutcome | None = None
    initial_pool_size: int = 0
    remaining_pool_size: int = 0
    killed_count: int = 0
    kills: list[KillRecord] = Field(default_factory=list)
    suppression_windows: int = 0
    maintenance_marks: int = 0
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    error: str | None = None

    def record(self, kill: KillRecord) -> None:
        self.kills.append(kill)

    def finish(self, outcome: AttritionOutcome) -> None:
        self.outcome = outcome
        self.finished_at = datetime.now(UTC)

    def kills_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for kill in self.kills:
            counts[kill.kill_type.value] = counts.get(kill.kill_type.value, 0) + 1
        return counts
