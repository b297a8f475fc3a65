"""
Runtime utilities for the attrition engine.

Provides:
- Event bus for internal pub/sub (attrition trace events)
- Run ID generation for correlating logs and reports
"""

from attrition_engine.runtime.event_bus import Event, EventBus, EventType, get_event_bus
from attrition_engine.runtime.run_context import generate_run_id

__all__ = [
    "Event",
    "EventBus",
    "EventType",
    "generate_run_id",
    "get_event_bus",
]
