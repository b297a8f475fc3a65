"""
Transactional store implementations.
"""

from attrition_engine.store.memory import InMemoryStore, InMemoryTransaction

__all__ = ["InMemoryStore", "InMemoryTransaction"]
