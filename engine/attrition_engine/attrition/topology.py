"""
Topology snapshot.

Captures the killable members of a cluster once, at the start of an
attrition run, and shuffles them into the order victims are taken in.
"""

import random
from collections.abc import Iterable

from attrition_engine.domain import Locality, ProcessClass, ProcessInfo, WorkerDescriptor
from attrition_engine.interfaces import TopologySource


def _zone_sort_key(zone_id: str | None) -> tuple[bool, str]:
    # Members without a zone sort first
    return (zone_id is not None, zone_id or "")


def is_killable(process: ProcessInfo) -> bool:
    """Live server processes that are not test harness members."""
    return (
        not process.failed
        and process.is_server
        and process.process_class != ProcessClass.TESTER
    )


def killable_members(processes: Iterable[ProcessInfo]) -> list[Locality]:
    """Localities of every killable process, in listing order."""
    return [process.locality for process in processes if is_killable(process)]


def zone_pool(processes: Iterable[ProcessInfo]) -> list[Locality]:
    """
    Collapse killable processes to one locality per zone.

    A zone fails together, so it only needs to appear once. When several
    processes share a zone, the last one listed provides the locality.
    Result is ordered by zone id.
    """
    by_zone: dict[str | None, Locality] = {}
    for process in processes:
        if is_killable(process):
            by_zone[process.locality.zone_id] = process.locality
    return [by_zone[zone] for zone in sorted(by_zone, key=_zone_sort_key)]


def capture_pool(source: TopologySource, rng: random.Random) -> list[Locality]:
    """
    Snapshot the target pool of a simulated cluster.

    Args:
        source: Topology source listing cluster processes
        rng: Random source for the shuffle

    Returns:
        Shuffled list of distinct zone localities
    """
    pool = zone_pool(source.list_members())
    rng.shuffle(pool)
    return pool


def capture_workers(workers: Iterable[WorkerDescriptor], rng: random.Random) -> list[WorkerDescriptor]:
    """
    Snapshot the live worker pool, testers excluded, shuffled.
    """
    pool = [worker for worker in workers if not worker.is_tester]
    rng.shuffle(pool)
    return pool
