"""
Live cluster connectivity.

Provides:
- AsyncClusterClient: roster queries and fire-and-forget reboot delivery
"""

from attrition_engine.cluster.client import AsyncClusterClient

__all__ = ["AsyncClusterClient"]
