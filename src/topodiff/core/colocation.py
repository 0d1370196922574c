"""Colocated database leader lookup.

All user tables of a colocated YSQL database share one root shard, so the
tablet server holding that shard's leader replica is the natural place to
connect to for that database.
"""

from __future__ import annotations

import logging
from typing import Iterable

from topodiff.core.collector import select_leader_topology
from topodiff.core.topology import Topology

logger = logging.getLogger(__name__)


class ColocationLookupError(RuntimeError):
    """Raised when no leader host can be reported for a colocated database."""


def find_colocated_leader_host(
    topologies: Iterable[Topology], leader: str, database_name: str
) -> str:
    """
    Return the host of the root shard leader of a colocated YSQL database.

    Dropped YSQL databases keep their name, so databases without tables are
    skipped; this finds the live database even when an older one with the
    same name was dropped.

    Raises:
        ColocationLookupError: If the database is not found, is not
            colocated, or its root shard has no reachable leader.
    """
    topology = select_leader_topology(topologies, leader)
    if topology is None:
        raise ColocationLookupError("Database name not found.")

    for database in topology.databases:
        if database.name != database_name:
            logger.debug("Found database: %s, is not %s", database.name, database_name)
            continue
        if topology.table_count(database.id) == 0:
            continue
        if not database.is_ysql:
            raise ColocationLookupError(
                f"Database {database_name} is a {database.kind} database, not ysql."
            )

        root = topology.colocation_root_shard(database.id)
        if root is None:
            raise ColocationLookupError(f"Database {database_name} is not colocated!")

        replica = root.leader_replica()
        if replica is None or not replica.host:
            raise ColocationLookupError("No tablet leader host found.")
        return replica.host

    raise ColocationLookupError("Database name not found.")
