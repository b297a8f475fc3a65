"""
Domain models for the attrition engine.

- Locality: topology identity of a cluster member
- KillScope: level of topology a kill targets
- KillType / KillAction: what a single attrition event does
- ProcessInfo / WorkerDescriptor: members reported by topology sources
"""

from attrition_engine.domain.action import KillAction, KillType
from attrition_engine.domain.locality import KillScope, Locality, ProcessClass
from attrition_engine.domain.member import ProcessInfo, RebootRequest, WorkerDescriptor

__all__ = [
    "KillAction",
    "KillScope",
    "KillType",
    "Locality",
    "ProcessClass",
    "ProcessInfo",
    "RebootRequest",
    "WorkerDescriptor",
]
