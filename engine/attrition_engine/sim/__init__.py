"""
In-process simulated cluster for attrition runs without real hosts.
"""

from attrition_engine.sim.cluster import SimulatedCluster, SimulatedKill

__all__ = ["SimulatedCluster", "SimulatedKill"]
