"""
Interfaces (abstract base classes) for the attrition engine.

These define the contracts that must be implemented by:
- ClusterControl: kill/reboot primitives
- TopologySource: process listing for simulated clusters
- WorkerRoster: live worker roster and reboot delivery
- KeyValueStore / Transaction: coordination flags and read-version checks
"""

from attrition_engine.interfaces.cluster_control import ClusterControl, TopologySource
from attrition_engine.interfaces.roster import WorkerRoster
from attrition_engine.interfaces.store import KeyValueStore, Transaction, TransactionOption

__all__ = [
    "ClusterControl",
    "KeyValueStore",
    "TopologySource",
    "Transaction",
    "TransactionOption",
    "WorkerRoster",
]
