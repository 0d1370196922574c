"""Topology diff engine.

Two observations of the leader's topology are merged into one change record
per identifier and entity kind. The first pass fills the `first` side of a
record and the second pass fills the `second` side; a record only seen by
one pass keeps an all-empty value set on the other side. How a record is
classified (added, removed, modified, unchanged) is derived on demand from
both sides and never stored.

Descendants (shards, replicas) resolve their table, database and leader
through the change maps of this engine rather than through the input
topologies, so a renamed or removed ancestor shows up consistently.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from topodiff.core.collector import select_leader_topology
from topodiff.core.identifiers import (
    FIRST_USER_OBJECT_NUMBER,
    colocation_root_owner,
    colocation_root_table_id,
    decode_object_number,
)
from topodiff.core.topology import DatabaseKind, Topology

logger = logging.getLogger(__name__)


class Side(str, Enum):
    FIRST = "first"
    SECOND = "second"


class ChangeKind(str, Enum):
    """
    Classification of a change record.

    Values:
        ADDED: Only the second observation has the identifier.
        REMOVED: Only the first observation has the identifier (or a YSQL
                 database lost all its tables).
        MODIFIED: Both observations have it, with different attributes.
        UNCHANGED: Both observations have identical attributes.
        INCONSISTENT: A dropped YSQL database regained tables under the same
                      id. Reported, never rendered.
    """

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    INCONSISTENT = "inconsistent"


@dataclass(frozen=True)
class DatabaseValues:
    name: str = ""
    kind: str = ""


@dataclass(frozen=True)
class TableValues:
    database_id: str = ""
    name: str = ""
    state: str = ""


@dataclass(frozen=True)
class ShardValues:
    table_id: str = ""
    state: str = ""
    leader: str = ""


@dataclass(frozen=True)
class ReplicaValues:
    addr: str = ""
    role: str = ""


@dataclass
class _ChangeRecord:
    def side(self, side: Side):
        return self.first if side is Side.FIRST else self.second

    def set_side(self, side: Side, values) -> None:
        if side is Side.FIRST:
            self.first = values
        else:
            self.second = values

    def classify(self) -> ChangeKind:
        blank = type(self.first)()
        if self.first == self.second:
            return ChangeKind.UNCHANGED
        if self.first == blank:
            return ChangeKind.ADDED
        if self.second == blank:
            return ChangeKind.REMOVED
        return ChangeKind.MODIFIED


@dataclass
class DatabaseChange(_ChangeRecord):
    first: DatabaseValues = field(default_factory=DatabaseValues)
    second: DatabaseValues = field(default_factory=DatabaseValues)


@dataclass
class TableChange(_ChangeRecord):
    first: TableValues = field(default_factory=TableValues)
    second: TableValues = field(default_factory=TableValues)


@dataclass
class ShardChange(_ChangeRecord):
    first: ShardValues = field(default_factory=ShardValues)
    second: ShardValues = field(default_factory=ShardValues)


@dataclass
class ReplicaChange(_ChangeRecord):
    first: ReplicaValues = field(default_factory=ReplicaValues)
    second: ReplicaValues = field(default_factory=ReplicaValues)


class TopologyDiff:
    """Per-identifier change records for databases, tables, shards and replicas."""

    def __init__(self) -> None:
        self.databases: dict[str, DatabaseChange] = {}
        self.tables: dict[str, TableChange] = {}
        self.shards: dict[str, ShardChange] = {}
        self.replicas: dict[tuple[str, str], ReplicaChange] = {}
        self.master_found = True
        self._table_counts: dict[Side, Counter] = {}
        self._shard_table_ids: dict[Side, set[str]] = {}

    @classmethod
    def between(
        cls,
        first: Iterable[Topology],
        first_leader: str,
        second: Iterable[Topology],
        second_leader: str,
    ) -> TopologyDiff:
        """Build a diff from two aggregate observations and their leaders."""
        diff = cls()
        diff.merge_first(first, first_leader)
        diff.merge_second(second, second_leader)
        return diff

    def merge_first(self, topologies: Iterable[Topology], leader: str) -> None:
        """Merge the leader's topology into the `first` side of the records."""
        self._merge(topologies, leader, Side.FIRST)

    def merge_second(self, topologies: Iterable[Topology], leader: str) -> None:
        """Merge the leader's topology into the `second` side of the records."""
        self._merge(topologies, leader, Side.SECOND)

    def _merge(self, topologies: Iterable[Topology], leader: str, side: Side) -> None:
        if not leader:
            logger.info("%s observation: no master leader found", side.value)
            self.master_found = False
            return
        topology = select_leader_topology(topologies, leader)
        if topology is None:
            logger.warning(
                "%s observation: no topology read from master leader %s",
                side.value,
                leader,
            )
            self.master_found = False
            return
        logger.debug("%s observation: master leader %s", side.value, leader)
        self._table_counts.clear()
        self._shard_table_ids.clear()

        seen: set[str] = set()
        for database in topology.databases:
            if database.id in seen:
                logger.error(
                    "Duplicate database id entry: id: %s, kind: %s, name: %s",
                    database.id,
                    database.kind,
                    database.name,
                )
                continue
            seen.add(database.id)
            self.databases.setdefault(database.id, DatabaseChange()).set_side(
                side, DatabaseValues(name=database.name, kind=database.kind)
            )

        seen.clear()
        for table in topology.tables:
            if table.id in seen:
                logger.error(
                    "Duplicate table id entry: id: %s, name: %s, database id: %s, state: %s",
                    table.id,
                    table.name,
                    table.database_id,
                    table.state,
                )
                continue
            seen.add(table.id)
            self.tables.setdefault(table.id, TableChange()).set_side(
                side,
                TableValues(
                    database_id=table.database_id, name=table.name, state=table.state
                ),
            )

        seen.clear()
        seen_replicas: set[tuple[str, str]] = set()
        for shard in topology.shards:
            if shard.id in seen:
                logger.error(
                    "Duplicate shard id entry: id: %s, table id: %s, state: %s, leader: %s",
                    shard.id,
                    shard.table_id,
                    shard.state,
                    shard.leader or "",
                )
                continue
            seen.add(shard.id)
            self.shards.setdefault(shard.id, ShardChange()).set_side(
                side,
                ShardValues(
                    table_id=shard.table_id, state=shard.state, leader=shard.leader or ""
                ),
            )
            for replica in shard.replicas:
                key = (shard.id, replica.server_uuid)
                if key in seen_replicas:
                    logger.error(
                        "Duplicate replica entry: (%s, %s), addr: %s, role: %s",
                        shard.id,
                        replica.server_uuid,
                        replica.addr,
                        replica.role,
                    )
                    continue
                seen_replicas.add(key)
                self.replicas.setdefault(key, ReplicaChange()).set_side(
                    side, ReplicaValues(addr=replica.addr, role=replica.role)
                )

    # derived lookups

    def table_count(self, database_id: str, side: Side) -> int:
        """Return the number of tables referencing the database on one side."""
        if side not in self._table_counts:
            self._table_counts[side] = Counter(
                r.side(side).database_id
                for r in self.tables.values()
                if r.side(side).database_id
            )
        return self._table_counts[side][database_id]

    def database_values(self, database_id: str, side: Side) -> DatabaseValues:
        record = self.databases.get(database_id)
        return record.side(side) if record else DatabaseValues()

    def table_values(self, table_id: str, side: Side) -> TableValues:
        record = self.tables.get(table_id)
        return record.side(side) if record else TableValues()

    def database_of_table(self, table_id: str, side: Side) -> DatabaseValues:
        return self.database_values(self.table_values(table_id, side).database_id, side)

    def has_shard_for_table(self, table_id: str, side: Side) -> bool:
        if side not in self._shard_table_ids:
            self._shard_table_ids[side] = {
                r.side(side).table_id for r in self.shards.values()
            }
        return table_id in self._shard_table_ids[side]

    def is_colocated_database(self, database_id: str, side: Side) -> bool:
        """Return True if a YSQL database has a colocation root shard on `side`."""
        if self.database_values(database_id, side).kind != DatabaseKind.YSQL:
            return False
        return self.has_shard_for_table(colocation_root_table_id(database_id), side)

    def is_colocated_table(self, table_id: str, side: Side) -> bool:
        """
        Return True if a YSQL user table lives in its database's root shard.

        Catalog tables never have shards, so they are not reported.
        """
        database_id = self.table_values(table_id, side).database_id
        if not self.is_colocated_database(database_id, side):
            return False
        if decode_object_number(table_id) < FIRST_USER_OBJECT_NUMBER:
            return False
        return not self.has_shard_for_table(table_id, side)

    def shard_path(self, shard_id: str, side: Side) -> tuple[str, ...]:
        """
        Return (database kind, database name, table name, shard id) for a shard.

        A colocation root shard has no table of its own and resolves to
        (database kind, database name, shard id).
        """
        record = self.shards.get(shard_id)
        table_id = record.side(side).table_id if record else ""
        root_of = colocation_root_owner(table_id)
        if root_of is not None:
            database = self.database_values(root_of, side)
            return (database.kind, database.name, shard_id)
        database = self.database_of_table(table_id, side)
        table = self.table_values(table_id, side)
        return (database.kind, database.name, table.name, shard_id)

    def is_suppressed_table(self, table_id: str) -> bool:
        """Return True for added/removed YSQL catalog tables."""
        kind = self.classify_table(table_id)
        if kind is ChangeKind.ADDED:
            side = Side.SECOND
        elif kind is ChangeKind.REMOVED:
            side = Side.FIRST
        else:
            return False
        return (
            decode_object_number(table_id) < FIRST_USER_OBJECT_NUMBER
            and self.database_of_table(table_id, side).kind == DatabaseKind.YSQL
        )

    def leader_address(self, shard_id: str, side: Side) -> str:
        """Return the address of a shard's leader replica on one side."""
        record = self.shards.get(shard_id)
        if record is None or not record.side(side).leader:
            return ""
        replica = self.replicas.get((shard_id, record.side(side).leader))
        return replica.side(side).addr if replica else ""

    # classification

    def classify_database(self, database_id: str) -> ChangeKind:
        record = self.databases[database_id]
        kind = record.classify()
        if kind is not ChangeKind.UNCHANGED or record.second.kind != DatabaseKind.YSQL:
            return kind

        # Dropped YSQL databases stay listed; they only lose their tables.
        first_count = self.table_count(database_id, Side.FIRST)
        second_count = self.table_count(database_id, Side.SECOND)
        if (first_count > 0) == (second_count > 0):
            return ChangeKind.UNCHANGED
        if first_count > 0:
            return ChangeKind.REMOVED
        return ChangeKind.INCONSISTENT

    def classify_table(self, table_id: str) -> ChangeKind:
        return self.tables[table_id].classify()

    def classify_shard(self, shard_id: str) -> ChangeKind:
        return self.shards[shard_id].classify()

    def classify_replica(self, key: tuple[str, str]) -> ChangeKind:
        return self.replicas[key].classify()

    def changes(self) -> dict[str, dict[object, ChangeKind]]:
        """Return every non-unchanged record id per entity kind with its classification."""
        return {
            "databases": _changed(self.databases, self.classify_database),
            "tables": _changed(self.tables, self.classify_table),
            "shards": _changed(self.shards, self.classify_shard),
            "replicas": _changed(self.replicas, self.classify_replica),
        }


def _changed(records, classify) -> dict:
    out = {}
    for key in sorted(records):
        kind = classify(key)
        if kind is not ChangeKind.UNCHANGED:
            out[key] = kind
    return out
