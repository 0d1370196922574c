"""Structured line records for the topology and diff views.

Both views are pure functions that turn the model into an ordered list of
`Line` records. Turning a record into text is a separate step
(`line_segments` / `line_text`), so the terminal renderer can attach styles
while tests compare plain strings.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from topodiff.core.diff import ChangeKind, Side, TopologyDiff
from topodiff.core.identifiers import (
    colocation_root_table_id,
    is_catalog_object,
    is_colocated_database,
    is_system_database,
)
from topodiff.core.leader import HealthReport
from topodiff.core.topology import DatabaseKind, Shard, Topology

logger = logging.getLogger(__name__)

COLOCATED = "[colocated]"
DEAD = "[DEAD]"
UNDER_REPLICATED = "[UNDER REPLICATED]"

NO_MASTER_MESSAGE = (
    "Master leader was not found in hosts specified, skipping entity diff."
)

_LABEL_WIDTH = 10


class LineKind(str, Enum):
    DATABASE = "Database"
    OBJECT = "Object"
    TABLET = "Tablet"
    REPLICA = "Replica"
    REPLICAS = "Replicas"
    NOTICE = "Notice"


class Symbol(str, Enum):
    ADDED = "+"
    REMOVED = "-"
    MODIFIED = "="


_SYMBOLS = {
    ChangeKind.ADDED: Symbol.ADDED,
    ChangeKind.REMOVED: Symbol.REMOVED,
    ChangeKind.MODIFIED: Symbol.MODIFIED,
}


@dataclass(frozen=True)
class Value:
    """A rendered value; `old` is set when the value changed between observations."""

    text: str
    old: str | None = None

    @classmethod
    def of(cls, old: str, new: str) -> Value:
        return cls(new) if old == new else cls(new, old=old)


@dataclass(frozen=True)
class ReplicaMark:
    addr: str
    role: str
    leader: bool = False
    dead: bool = False


@dataclass(frozen=True)
class Line:
    """
    One output line.

    Attributes:
        kind: Entity the line describes.
        symbol: +, - or = for diff lines, None for the live view.
        path: Dotted name segments (database kind, database, table, shard).
        attrs: Named attributes rendered as `name: value`.
        id: Identifier of the entity, if shown.
        markers: Annotations such as [colocated].
        node: Source node prefix (live view with details).
        indent: Nesting level below the owning line.
        replicas: Replica list (live view replica lines).
        message: Free text (notice lines).
    """

    kind: LineKind
    symbol: Symbol | None = None
    path: tuple[Value, ...] = ()
    attrs: tuple[tuple[str, Value], ...] = ()
    id: str = ""
    markers: tuple[str, ...] = ()
    node: str = ""
    indent: int = 0
    replicas: tuple[ReplicaMark, ...] = ()
    message: str = ""


def _values(*texts: str) -> tuple[Value, ...]:
    return tuple(Value(t) for t in texts)


def _markers(*pairs: tuple[bool, str]) -> tuple[str, ...]:
    return tuple(marker for enabled, marker in pairs if enabled)


# live view


def topology_lines(
    topologies: Iterable[Topology],
    *,
    leader: str,
    details: bool = False,
    table_filter: re.Pattern | None = None,
    host_filter: re.Pattern | None = None,
    health: HealthReport | None = None,
) -> list[Line]:
    """
    Return the lines of the live topology view.

    Without details only the leader's topology is shown, and system databases
    and YSQL catalog tables are hidden. With details every topology whose
    source node matches `host_filter` is shown, each line prefixed with it.
    """
    health = health or HealthReport()
    lines: list[Line] = []

    for topology in sorted(topologies, key=lambda t: t.source_node):
        if not details and topology.source_node != leader:
            continue
        if details and host_filter and not host_filter.search(topology.source_node):
            continue
        node = topology.source_node if details else ""

        for database in topology.databases:
            if not details and is_system_database(database.id):
                continue
            if topology.is_dropped_database(database):
                continue
            colocated = is_colocated_database(topology, database)
            lines.append(
                Line(
                    LineKind.DATABASE,
                    path=_values(database.kind, database.name),
                    id=database.id,
                    markers=_markers((colocated, COLOCATED)),
                    node=node,
                )
            )
            if colocated:
                root_id = colocation_root_table_id(database.id)
                for shard in topology.shards_for_table(root_id):
                    lines.extend(
                        _shard_lines(
                            shard, (database.kind, database.name), node, health
                        )
                    )

        for table in topology.tables:
            if not details and is_system_database(table.database_id):
                continue
            if table_filter and not table_filter.search(table.name):
                continue
            database = topology.database_by_id(table.database_id)
            kind = database.kind if database else ""
            name = database.name if database else ""
            catalog = is_catalog_object(table.id)
            if not details and catalog and kind == DatabaseKind.YSQL:
                continue
            shards = topology.shards_for_table(table.id)
            colocated = (
                database is not None
                and not catalog
                and not shards
                and is_colocated_database(topology, database)
            )
            lines.append(
                Line(
                    LineKind.OBJECT,
                    path=_values(kind, name, table.name),
                    attrs=(("state", Value(table.state)),),
                    id=table.id,
                    markers=_markers((colocated, COLOCATED)),
                    node=node,
                )
            )
            for shard in shards:
                lines.extend(_shard_lines(shard, (kind, name, table.name), node, health))

    return lines


def _shard_lines(
    shard: Shard, owner: tuple[str, ...], node: str, health: HealthReport
) -> list[Line]:
    tablet = Line(
        LineKind.TABLET,
        path=_values(*owner, shard.id),
        attrs=(("state", Value(shard.state)),),
        markers=_markers((shard.id in health.under_replicated, UNDER_REPLICATED)),
        node=node,
        indent=1,
    )
    replicas = Line(
        LineKind.REPLICAS,
        replicas=tuple(
            ReplicaMark(
                addr=r.addr,
                role=r.role,
                leader=bool(shard.leader) and r.server_uuid == shard.leader,
                dead=r.server_uuid in health.dead_nodes,
            )
            for r in shard.replicas
        ),
        node=node,
        indent=2,
    )
    return [tablet, replicas]


# diff view


def diff_lines(diff: TopologyDiff) -> list[Line]:
    """Return the lines of the diff view in entity and identifier order."""
    if not diff.master_found:
        return [Line(LineKind.NOTICE, message=NO_MASTER_MESSAGE)]

    lines: list[Line] = []
    lines.extend(_database_diff_lines(diff))
    lines.extend(_table_diff_lines(diff))
    lines.extend(_shard_diff_lines(diff))
    lines.extend(_replica_diff_lines(diff))
    return lines


def _side_for(kind: ChangeKind) -> Side:
    """Added records only have a second side; everything else is shown as it was."""
    return Side.SECOND if kind is ChangeKind.ADDED else Side.FIRST


def _database_diff_lines(diff: TopologyDiff) -> list[Line]:
    lines = []
    for database_id in sorted(diff.databases):
        kind = diff.classify_database(database_id)
        if kind is ChangeKind.UNCHANGED or is_system_database(database_id):
            continue
        if kind is ChangeKind.INCONSISTENT:
            logger.error(
                "ysql database name: %s, id: %s table count was zero, now is: %d. "
                "This is not possible",
                diff.databases[database_id].second.name,
                database_id,
                diff.table_count(database_id, Side.SECOND),
            )
            continue

        record = diff.databases[database_id]
        side = _side_for(kind)
        colocated = diff.is_colocated_database(database_id, side)
        if kind is ChangeKind.MODIFIED:
            path = (
                Value.of(record.first.kind, record.second.kind),
                Value.of(record.first.name, record.second.name),
            )
        else:
            values = record.side(side)
            path = _values(values.kind, values.name)
        lines.append(
            Line(
                LineKind.DATABASE,
                symbol=_SYMBOLS[kind],
                path=path,
                id=database_id,
                markers=_markers((colocated, COLOCATED)),
            )
        )
    return lines


def _table_diff_lines(diff: TopologyDiff) -> list[Line]:
    lines = []
    for table_id in sorted(diff.tables):
        kind = diff.classify_table(table_id)
        if kind is ChangeKind.UNCHANGED or diff.is_suppressed_table(table_id):
            continue

        record = diff.tables[table_id]
        side = _side_for(kind)
        if is_system_database(record.side(side).database_id):
            continue
        database = diff.database_of_table(table_id, side)
        if kind is ChangeKind.MODIFIED:
            name = Value.of(record.first.name, record.second.name)
            state = Value.of(record.first.state, record.second.state)
        else:
            values = record.side(side)
            name, state = Value(values.name), Value(values.state)
        lines.append(
            Line(
                LineKind.OBJECT,
                symbol=_SYMBOLS[kind],
                path=(Value(database.kind), Value(database.name), name),
                attrs=(("state", state),),
                id=table_id,
                markers=_markers(
                    (diff.is_colocated_table(table_id, side), COLOCATED)
                ),
            )
        )
    return lines


def _shard_diff_lines(diff: TopologyDiff) -> list[Line]:
    lines = []
    for shard_id in sorted(diff.shards):
        kind = diff.classify_shard(shard_id)
        if kind is ChangeKind.UNCHANGED:
            continue

        record = diff.shards[shard_id]
        if kind is ChangeKind.MODIFIED:
            path = diff.shard_path(shard_id, Side.SECOND)
            state = Value.of(record.first.state, record.second.state)
            leader = Value.of(
                diff.leader_address(shard_id, Side.FIRST),
                diff.leader_address(shard_id, Side.SECOND),
            )
            if record.first.leader == record.second.leader:
                leader = Value(leader.text)
        else:
            side = _side_for(kind)
            path = diff.shard_path(shard_id, side)
            state = Value(record.side(side).state)
            leader = Value(diff.leader_address(shard_id, side))
        lines.append(
            Line(
                LineKind.TABLET,
                symbol=_SYMBOLS[kind],
                path=_values(*path),
                attrs=(("state", state), ("leader", leader)),
            )
        )
    return lines


def _replica_diff_lines(diff: TopologyDiff) -> list[Line]:
    lines = []
    for key in sorted(diff.replicas):
        kind = diff.classify_replica(key)
        if kind is ChangeKind.UNCHANGED:
            continue

        shard_id, _ = key
        record = diff.replicas[key]
        if kind is ChangeKind.MODIFIED:
            path = diff.shard_path(shard_id, Side.SECOND)
            addr = Value.of(record.first.addr, record.second.addr)
            role = Value.of(record.first.role, record.second.role)
        else:
            side = _side_for(kind)
            path = diff.shard_path(shard_id, side)
            addr = Value(record.side(side).addr)
            role = Value(record.side(side).role)
        lines.append(
            Line(
                LineKind.REPLICA,
                symbol=_SYMBOLS[kind],
                path=_values(*path),
                attrs=(("addr", addr), ("role", role)),
            )
        )
    return lines


# text


_SYMBOL_STYLES = {
    Symbol.ADDED: "added",
    Symbol.REMOVED: "removed",
    Symbol.MODIFIED: "changed",
}
_MARKER_STYLES = {
    COLOCATED: "meta",
    DEAD: "err",
    UNDER_REPLICATED: "warn",
}


def _value_segments(value: Value) -> list[tuple[str, str]]:
    if value.old is None:
        return [(value.text, "")]
    return [(value.old, "changed"), ("->", ""), (value.text, "changed")]


def line_segments(line: Line) -> list[tuple[str, str]]:
    """
    Return the line as (text, style) segments.

    Style names refer to the CLI theme; an empty style means plain text.
    """
    segments: list[tuple[str, str]] = []
    if line.node:
        segments.append((f"{line.node} ", "meta"))
    if line.kind is LineKind.NOTICE:
        segments.append((line.message, ""))
        return segments
    if line.symbol is not None:
        segments.append((line.symbol.value, _SYMBOL_STYLES[line.symbol]))
        segments.append((" ", ""))

    segments.append(("  " * line.indent + f"{line.kind.value}:".ljust(_LABEL_WIDTH), ""))

    if line.kind is LineKind.REPLICAS:
        segments.append(("(", ""))
        for index, replica in enumerate(line.replicas):
            if index:
                segments.append((", ", ""))
            role = f"{replica.role}:LEADER" if replica.leader else replica.role
            segments.append((f"{replica.addr}({role}", ""))
            if replica.dead:
                segments.append((DEAD, _MARKER_STYLES[DEAD]))
            segments.append((")", ""))
        segments.append((")", ""))
        return segments

    for index, value in enumerate(line.path):
        if index:
            segments.append((".", ""))
        segments.extend(_value_segments(value))
    for name, value in line.attrs:
        segments.append((f", {name}: ", ""))
        segments.extend(_value_segments(value))
    if line.id:
        segments.append((f", id: {line.id}", ""))
    for marker in line.markers:
        segments.append((" ", ""))
        segments.append((marker, _MARKER_STYLES.get(marker, "")))
    return segments


def line_text(line: Line) -> str:
    """Return the line as plain text."""
    return "".join(text for text, _ in line_segments(line))
