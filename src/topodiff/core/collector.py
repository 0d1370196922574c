"""Parallel topology collection.

This module fans out one `/dump-entities` read per (host, port) pair over a
bounded thread pool and gathers the per-node results into an aggregate
observation. Transport and parsing problems are confined to the node they
happen on: such a node simply yields an empty topology, which is filtered
out together with nodes that answered but are not ready yet.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Iterable, Protocol

from topodiff.core.topology import Topology

logger = logging.getLogger(__name__)


class EntitiesAdapter(Protocol):
    """Interface for reading the raw entities document of one node."""

    def dump_entities(self, host: str, port: str) -> str:
        """Return the `/dump-entities` body, or an empty string."""
        ...


def read_topology(adapter: EntitiesAdapter, host: str, port: str) -> Topology:
    """
    Read and parse the topology of a single node.

    Never raises for a bad response: an unparseable body gives an empty
    topology tagged with the node.
    """
    observed_at = datetime.now(timezone.utc)
    body = adapter.dump_entities(host, port)
    return Topology.from_json(
        body,
        source_node=f"{host}:{port}",
        observed_at=observed_at,
    )


def collect_topologies(
    adapter: EntitiesAdapter,
    hosts: Iterable[str],
    ports: Iterable[str],
    *,
    max_parallel: int,
) -> list[Topology]:
    """
    Read the topology of every (host, port) pair in parallel.

    Args:
        adapter: Adapter used to fetch the entities document.
        hosts: Hostnames or addresses of the masters.
        ports: Ports to try on every host.
        max_parallel: Maximum number of concurrent requests.

    Returns:
        The topologies of the nodes that returned databases, tables and
        shards. The order of the returned topologies is not guaranteed.
    """
    if max_parallel < 1:
        raise ValueError("max_parallel must be >= 1")

    endpoints = [(host, port) for host in hosts for port in ports]
    if not endpoints:
        return []

    logger.info("begin parallel http read of %d endpoint(s)", len(endpoints))
    started = time.monotonic()

    results: list[Topology] = []
    with ThreadPoolExecutor(max_workers=max_parallel) as pool:
        futures = [
            pool.submit(read_topology, adapter, host, port) for host, port in endpoints
        ]
        for f in as_completed(futures):
            results.append(f.result())

    logger.info("end parallel http read: %.3fs", time.monotonic() - started)

    complete = [t for t in results if not t.is_empty()]
    for topology in results:
        if topology.is_empty():
            logger.debug("(%s) discarding incomplete topology", topology.source_node)
    return complete


def select_leader_topology(
    topologies: Iterable[Topology], leader: str
) -> Topology | None:
    """Return the topology observed from the leader node, if any."""
    if not leader:
        return None
    for topology in topologies:
        if topology.source_node == leader:
            return topology
    return None
