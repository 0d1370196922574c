"""Snapshot capture, replay and diff workflows.

These functions wire the collector, leader resolution and the snapshot store
together. They contain no terminal I/O so they can be driven from the CLI or
from tests with stub adapters.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

from topodiff.core.adapters.store import SnapshotStore
from topodiff.core.collector import EntitiesAdapter, collect_topologies
from topodiff.core.diff import TopologyDiff
from topodiff.core.leader import (
    HealthReport,
    LeaderAdapter,
    fetch_health,
    resolve_leader_http,
)
from topodiff.core.topology import Topology

logger = logging.getLogger(__name__)

ENTITIES_GROUP = "entities"
LEADER_GROUP = "leader"
HEALTH_GROUP = "health"

Observation = tuple[list[Topology], str]


class MasterAdapter(EntitiesAdapter, LeaderAdapter, Protocol):
    """Everything needed to observe a cluster through its masters."""


def read_live(
    adapter: MasterAdapter,
    hosts: list[str],
    ports: list[str],
    *,
    max_parallel: int,
) -> Observation:
    """Collect the topologies of all masters and resolve the current leader."""
    topologies = collect_topologies(adapter, hosts, ports, max_parallel=max_parallel)
    leader = resolve_leader_http(adapter, hosts, ports, max_parallel=max_parallel)
    return topologies, leader


def perform_snapshot(
    store: SnapshotStore,
    adapter: MasterAdapter,
    hosts: list[str],
    ports: list[str],
    *,
    max_parallel: int,
    comment: str = "",
) -> int:
    """
    Capture the current topology, leader and health and store them.

    Returns:
        The number of the new snapshot.
    """
    logger.info("begin snapshot")
    started = time.monotonic()

    topologies, leader = read_live(adapter, hosts, ports, max_parallel=max_parallel)
    health = fetch_health(adapter, leader)

    number = store.create_snapshot(comment)
    store.write(number, ENTITIES_GROUP, [t.to_dict() for t in topologies])
    store.write(number, LEADER_GROUP, {"leader": leader})
    store.write(number, HEALTH_GROUP, health.to_dict())

    logger.info("end snapshot %d: %.3fs", number, time.monotonic() - started)
    return number


def load_snapshot(store: SnapshotStore, number: int) -> Observation:
    """Return the stored topologies and leader of a snapshot."""
    raw: Any = store.read(number, ENTITIES_GROUP)
    topologies: list[Topology] = []
    for item in raw if isinstance(raw, list) else []:
        if isinstance(item, dict):
            topologies.append(Topology.from_stored(item))
    leader_payload: Any = store.read(number, LEADER_GROUP)
    leader = ""
    if isinstance(leader_payload, dict):
        leader = str(leader_payload.get("leader") or "")
    return topologies, leader


def load_health(store: SnapshotStore, number: int) -> HealthReport:
    """Return the stored health report of a snapshot."""
    return HealthReport.from_dict(store.read(number, HEALTH_GROUP))


def snapshot_diff(store: SnapshotStore, begin: int, end: int) -> TopologyDiff:
    """Diff two stored snapshots, each against its own leader."""
    first, first_leader = load_snapshot(store, begin)
    second, second_leader = load_snapshot(store, end)
    return TopologyDiff.between(first, first_leader, second, second_leader)


def adhoc_diff(
    read_first: Callable[[], Observation],
    read_second: Callable[[], Observation],
) -> TopologyDiff:
    """
    Diff two live reads.

    The second read only starts after the first one completed and merged;
    callers use this to wait for the user between the two reads.
    """
    diff = TopologyDiff()
    diff.merge_first(*read_first())
    diff.merge_second(*read_second())
    return diff
