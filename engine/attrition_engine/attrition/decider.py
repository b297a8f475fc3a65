"""
Kill-mode decider.

Weights lean towards recoverable failures (reboot, instant kill) while
still sampling data loss and fault injection.
"""

import random

from attrition_engine.attrition.models import AttritionConfig
from attrition_engine.domain import KillAction, KillType

# Share of non-reboot events that delete the target's data
REBOOT_AND_DELETE_PROBABILITY = 0.33
# Share of reboot events that reboot a process rather than the whole zone
REBOOT_PROCESS_PROBABILITY = 0.5

SCOPED_KILL_TYPES = (KillType.KILL_INSTANTLY, KillType.INJECT_FAULTS, KillType.REBOOT_AND_DELETE)


def decide_action(config: AttritionConfig, rng: random.Random) -> KillAction:
    """
    Draw the action for one per-zone attrition event.

    reboot mode: half the time reboot a process in the zone (all of them or
    one, at random), otherwise reboot the zone.
    Otherwise a third of events are REBOOT_AND_DELETE; the rest split evenly
    between KILL_INSTANTLY and INJECT_FAULTS, or are all KILL_INSTANTLY when
    fault injection is disallowed.
    """
    if config.reboot:
        if rng.random() < REBOOT_PROCESS_PROBABILITY:
            return KillAction(KillType.REBOOT_PROCESS, all_processes=rng.random() > 0.5)
        return KillAction(KillType.REBOOT)

    if rng.random() < REBOOT_AND_DELETE_PROBABILITY:
        return KillAction(KillType.REBOOT_AND_DELETE)
    if rng.random() < 0.5 or not config.allow_fault_injection:
        return KillAction(KillType.KILL_INSTANTLY)
    return KillAction(KillType.INJECT_FAULTS)


def decide_scoped_action(config: AttritionConfig, rng: random.Random) -> KillAction:
    """
    Draw the action for a collective (datacenter, machine, ...) kill.

    Always REBOOT in reboot mode, otherwise uniform over
    KILL_INSTANTLY, INJECT_FAULTS and REBOOT_AND_DELETE.
    """
    if config.reboot:
        return KillAction(KillType.REBOOT)
    return KillAction(SCOPED_KILL_TYPES[rng.randrange(len(SCOPED_KILL_TYPES))])
