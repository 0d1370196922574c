"""Core topology model.

A Topology is one observation of the cluster object tree (databases, tables,
shards and their replicas) as reported by a single master's `/dump-entities`
endpoint. The model is immutable once built and offers index based lookups
for the foreign keys that link the flat wire arrays together:

- `Table.database_id` -> `Database.id`
- `Shard.table_id` -> `Table.id`, or a colocation root id for colocated
  databases (see `topodiff.core.identifiers`)
- replicas are nested in their shard
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from topodiff.core.identifiers import colocation_root_table_id

logger = logging.getLogger(__name__)


class DatabaseKind(str, Enum):
    """
    Database (keyspace) API kinds.

    Values:
        YSQL: Postgres compatible API. Dropped databases stay in the
              keyspace list and only lose their tables.
        YCQL: Cassandra compatible API. Dropped databases disappear.
    """

    YSQL = "ysql"
    YCQL = "ycql"


@dataclass(frozen=True)
class Database:
    """A database (keyspace)."""

    id: str
    name: str
    kind: str

    @property
    def is_ysql(self) -> bool:
        return self.kind == DatabaseKind.YSQL


@dataclass(frozen=True)
class Table:
    """A table, index or other relation belonging to one database."""

    id: str
    database_id: str
    name: str
    state: str


@dataclass(frozen=True)
class Replica:
    """One copy of a shard, hosted by the tablet server `server_uuid`."""

    server_uuid: str
    addr: str
    role: str

    @property
    def host(self) -> str:
        """Return the address without its port."""
        return self.addr.split(":", 1)[0]


@dataclass(frozen=True)
class Shard:
    """
    A shard (tablet) of a table.

    Attributes:
        id: Unique shard identifier.
        table_id: Owning table id, or the colocation root id of a database.
        state: Free-form shard state, e.g. RUNNING.
        leader: server_uuid of the leader replica, if one is elected.
        replicas: Replicas of this shard in wire order.
    """

    id: str
    table_id: str
    state: str
    leader: str | None = None
    replicas: tuple[Replica, ...] = ()

    def leader_replica(self) -> Replica | None:
        if not self.leader:
            return None
        for replica in self.replicas:
            if replica.server_uuid == self.leader:
                return replica
        return None


@dataclass(frozen=True)
class Topology:
    """
    The full object tree observed from one node at one instant.

    Attributes:
        source_node: `host:port` of the node that answered.
        observed_at: Time the request for this observation was issued.
    """

    source_node: str = ""
    observed_at: datetime | None = None
    databases: tuple[Database, ...] = ()
    tables: tuple[Table, ...] = ()
    shards: tuple[Shard, ...] = ()
    _databases_by_id: dict[str, Database] = field(
        init=False, repr=False, compare=False
    )
    _tables_by_database: dict[str, list[Table]] = field(
        init=False, repr=False, compare=False
    )
    _shards_by_table: dict[str, list[Shard]] = field(
        init=False, repr=False, compare=False
    )
    _shards_by_id: dict[str, Shard] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        databases_by_id: dict[str, Database] = {}
        for database in self.databases:
            databases_by_id.setdefault(database.id, database)

        tables_by_database: dict[str, list[Table]] = {}
        for table in self.tables:
            tables_by_database.setdefault(table.database_id, []).append(table)

        shards_by_table: dict[str, list[Shard]] = {}
        shards_by_id: dict[str, Shard] = {}
        for shard in self.shards:
            shards_by_table.setdefault(shard.table_id, []).append(shard)
            shards_by_id.setdefault(shard.id, shard)

        object.__setattr__(self, "_databases_by_id", databases_by_id)
        object.__setattr__(self, "_tables_by_database", tables_by_database)
        object.__setattr__(self, "_shards_by_table", shards_by_table)
        object.__setattr__(self, "_shards_by_id", shards_by_id)

    def is_empty(self) -> bool:
        """Return True if any of the three collections is empty."""
        return not self.databases or not self.tables or not self.shards

    def database_by_id(self, database_id: str) -> Database | None:
        return self._databases_by_id.get(database_id)

    def tables_for_database(self, database_id: str) -> list[Table]:
        return list(self._tables_by_database.get(database_id, ()))

    def table_count(self, database_id: str) -> int:
        return len(self._tables_by_database.get(database_id, ()))

    def shards_for_table(self, table_id: str) -> list[Shard]:
        return list(self._shards_by_table.get(table_id, ()))

    def replicas_for_shard(self, shard_id: str) -> list[Replica]:
        shard = self._shards_by_id.get(shard_id)
        return list(shard.replicas) if shard else []

    def colocation_root_shard(self, database_id: str) -> Shard | None:
        shards = self._shards_by_table.get(colocation_root_table_id(database_id))
        return shards[0] if shards else None

    def is_dropped_database(self, database: Database) -> bool:
        """
        Return True for a YSQL database that was dropped but not purged.

        YSQL databases stay listed after `DROP DATABASE`; the only sign of the
        drop is that no table references them anymore. YCQL databases are
        removed from the list instead, so they are never reported here.
        """
        return database.is_ysql and self.table_count(database.id) == 0

    @classmethod
    def from_json(
        cls,
        text: str,
        *,
        source_node: str = "",
        observed_at: datetime | None = None,
    ) -> Topology:
        """
        Parse a `/dump-entities` JSON body.

        Never raises: a body that is not valid JSON, or that lacks the
        `keyspaces`/`tables`/`tablets` arrays, gives an empty topology.
        """
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as exc:
            logger.debug(
                "(%s) could not parse /dump-entities json data: %s", source_node, exc
            )
            return cls(source_node=source_node, observed_at=observed_at)
        return cls.from_dict(payload, source_node=source_node, observed_at=observed_at)

    @classmethod
    def from_dict(
        cls,
        payload: Any,
        *,
        source_node: str = "",
        observed_at: datetime | None = None,
    ) -> Topology:
        """Build a topology from decoded wire data (see `from_json`)."""
        if not isinstance(payload, Mapping):
            logger.debug("(%s) entities payload is not an object", source_node)
            return cls(source_node=source_node, observed_at=observed_at)

        rows = {key: payload.get(key) for key in ("keyspaces", "tables", "tablets")}
        missing = [key for key, value in rows.items() if not isinstance(value, list)]
        if missing:
            logger.debug(
                "(%s) entities payload lacks array(s): %s",
                source_node,
                ", ".join(missing),
            )
            return cls(source_node=source_node, observed_at=observed_at)

        return cls(
            source_node=source_node,
            observed_at=observed_at,
            databases=tuple(_parse_rows(rows["keyspaces"], _database_from_row)),
            tables=tuple(_parse_rows(rows["tables"], _table_from_row)),
            shards=tuple(_parse_rows(rows["tablets"], _shard_from_row)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, tagged with node and timestamp."""
        return {
            "hostname_port": self.source_node,
            "timestamp": self.observed_at.isoformat() if self.observed_at else None,
            "keyspaces": [
                {
                    "keyspace_id": d.id,
                    "keyspace_name": d.name,
                    "keyspace_type": d.kind,
                }
                for d in self.databases
            ],
            "tables": [
                {
                    "table_id": t.id,
                    "keyspace_id": t.database_id,
                    "table_name": t.name,
                    "state": t.state,
                }
                for t in self.tables
            ],
            "tablets": [_shard_to_row(s) for s in self.shards],
        }

    @classmethod
    def from_stored(cls, payload: Mapping[str, Any]) -> Topology:
        """Rebuild a topology written by `to_dict`."""
        observed_at = None
        raw_timestamp = payload.get("timestamp")
        if isinstance(raw_timestamp, str):
            try:
                observed_at = datetime.fromisoformat(raw_timestamp)
            except ValueError:
                observed_at = None
        return cls.from_dict(
            payload,
            source_node=str(payload.get("hostname_port") or ""),
            observed_at=observed_at,
        )


def _parse_rows(rows: Iterable[Any], build) -> list:
    out = []
    for row in rows:
        try:
            out.append(build(row))
        except (KeyError, TypeError, AttributeError):
            logger.debug("skipping malformed entities row: %r", row)
    return out


def _database_from_row(row: Mapping[str, Any]) -> Database:
    return Database(
        id=str(row["keyspace_id"]),
        name=str(row["keyspace_name"]),
        kind=str(row["keyspace_type"]),
    )


def _table_from_row(row: Mapping[str, Any]) -> Table:
    return Table(
        id=str(row["table_id"]),
        database_id=str(row["keyspace_id"]),
        name=str(row["table_name"]),
        state=str(row["state"]),
    )


def _shard_from_row(row: Mapping[str, Any]) -> Shard:
    leader = row.get("leader")
    return Shard(
        id=str(row["tablet_id"]),
        table_id=str(row["table_id"]),
        state=str(row["state"]),
        leader=str(leader) if leader else None,
        replicas=tuple(
            Replica(
                server_uuid=str(r["server_uuid"]),
                addr=str(r["addr"]),
                role=str(r["type"]),
            )
            for r in (row.get("replicas") or [])
        ),
    )


def _shard_to_row(shard: Shard) -> dict[str, Any]:
    row: dict[str, Any] = {
        "table_id": shard.table_id,
        "tablet_id": shard.id,
        "state": shard.state,
    }
    if shard.replicas:
        row["replicas"] = [
            {"type": r.role, "server_uuid": r.server_uuid, "addr": r.addr}
            for r in shard.replicas
        ]
    if shard.leader:
        row["leader"] = shard.leader
    return row
