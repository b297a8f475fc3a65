"""
Target selection.

Scoped kills are collective: killing a datacenter kills every member
located there. The pool is consumed from its tail, so a shuffled pool gives
a stable, unpredictable victim sequence.
"""

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from attrition_engine.domain import KillScope, Locality

T = TypeVar("T")


def _identity(member: Locality) -> Locality:
    return member


def resolve_target_id(
    pool: Sequence[T],
    scope: KillScope,
    explicit_id: str | None = None,
    locality_of: Callable[[Any], Locality] = _identity,
) -> str | None:
    """
    Return the scope value to kill: the explicit id, else the tail's.

    Raises:
        ValueError: No explicit id and the pool is empty
    """
    if explicit_id:
        return explicit_id
    if not pool:
        raise ValueError("Cannot select a target from an empty pool")
    return locality_of(pool[-1]).get(scope)


def select_targets(
    pool: Sequence[T],
    scope: KillScope,
    explicit_id: str | None = None,
    locality_of: Callable[[Any], Locality] = _identity,
) -> list[T]:
    """
    Select the pool members to kill.

    ZONE scope without an explicit id selects exactly the pool's tail.
    Otherwise every member whose scope value equals the resolved id is
    selected, in pool order. Members lacking the scope value never match.

    Args:
        pool: Shuffled target pool (localities or worker descriptors)
        scope: Topology level of the kill
        explicit_id: Configured target override
        locality_of: Extracts the locality from a pool member

    Returns:
        Selected members (may be empty if nothing matches an explicit id)
    """
    if scope == KillScope.ZONE and not explicit_id:
        if not pool:
            raise ValueError("Cannot select a target from an empty pool")
        return [pool[-1]]

    target = resolve_target_id(pool, scope, explicit_id, locality_of)
    if target is None:
        return []
    return [member for member in pool if locality_of(member).get(scope) == target]
