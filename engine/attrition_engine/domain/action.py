"""
Kill action domain model.

A kill action is built by the kill-mode decider and handed straight to
cluster control. Nothing keeps it afterwards.
"""

from dataclasses import dataclass
from enum import Enum


class KillType(str, Enum):
    """
    Kind of failure induced on a target.

    REBOOT_AND_DELETE simulates permanent data loss; INJECT_FAULTS degrades
    the target without stopping it.
    """

    REBOOT = "REBOOT"
    REBOOT_AND_DELETE = "REBOOT_AND_DELETE"
    KILL_INSTANTLY = "KILL_INSTANTLY"
    INJECT_FAULTS = "INJECT_FAULTS"
    REBOOT_PROCESS = "REBOOT_PROCESS"


@dataclass(frozen=True)
class KillAction:
    """A single decided action: what to do, plus REBOOT_PROCESS's flag."""

    kill_type: KillType
    all_processes: bool = False

    def __str__(self) -> str:
        if self.kill_type == KillType.REBOOT_PROCESS:
            return f"{self.kill_type.value}(all_processes={self.all_processes})"
        return self.kill_type.value
