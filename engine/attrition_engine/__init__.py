"""
Attrition Engine

A chaos-engineering controller that deliberately induces failures in a
cluster to validate that it tolerates partial failure:
- Process kill, reboot and data-loss reboots
- Datacenter / datahall / machine / process isolation
- Transient fault injection
- Health-suppression windows so induced failures do not skew verdicts
"""

__version__ = "1.0.0"
__author__ = "Attrition Engine Team"

from attrition_engine.config import Settings, get_settings

__all__ = ["__version__", "Settings", "get_settings"]
