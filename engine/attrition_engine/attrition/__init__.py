"""
Attrition: deliberate failure injection against cluster members.

- AttritionScheduler: paced attrition against a simulated cluster
- LiveAttritionScheduler: reboot requests against live workers
- HealthSuppressionCoordinator: suppression windows and maintenance marks
- AttritionWorkload: harness boundary (time budget, outcome filtering)
"""

from attrition_engine.attrition.decider import decide_action, decide_scoped_action
from attrition_engine.attrition.live import LiveAttritionScheduler
from attrition_engine.attrition.models import (
    AttritionConfig,
    AttritionOutcome,
    AttritionState,
    KillRecord,
    RunReport,
)
from attrition_engine.attrition.scheduler import AttritionScheduler
from attrition_engine.attrition.selector import select_targets
from attrition_engine.attrition.suppression import HealthSuppressionCoordinator
from attrition_engine.attrition.workload import AttritionWorkload, PerfMetric

__all__ = [
    "AttritionConfig",
    "AttritionOutcome",
    "AttritionScheduler",
    "AttritionState",
    "AttritionWorkload",
    "HealthSuppressionCoordinator",
    "KillRecord",
    "LiveAttritionScheduler",
    "PerfMetric",
    "RunReport",
    "decide_action",
    "decide_scoped_action",
    "select_targets",
]
