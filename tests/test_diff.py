import logging

from topodiff.core.diff import ChangeKind, Side, TopologyDiff
from topodiff.core.identifiers import colocation_root_table_id
from topodiff.core.render import NO_MASTER_MESSAGE, LineKind, diff_lines, line_text
from topodiff.core.topology import Database, Replica, Shard, Table, Topology

LEADER = "m1:7000"
D1 = "0000400f000030008000000000000000"
D2 = "00004010000030008000000000000000"
ORDERS = "0000400f000030008000000000004001"
ITEMS = "0000400f000030008000000000004002"
USERS = "0000400f000030008000000000004003"
ARCHIVE = "0000400f000030008000000000004e20"
PG_CLASS = "0000400f000030008000000000000005"


def _db(db_id: str = D1, name: str = "d1", kind: str = "ysql") -> Database:
    return Database(id=db_id, name=name, kind=kind)


def _table(table_id: str, name: str, db_id: str = D1, state: str = "RUNNING") -> Table:
    return Table(id=table_id, database_id=db_id, name=name, state=state)


def _shard(shard_id: str, table_id: str, leader=None, replicas=(), state="RUNNING") -> Shard:
    return Shard(
        id=shard_id,
        table_id=table_id,
        state=state,
        leader=leader,
        replicas=tuple(replicas),
    )


def _replicas() -> list[Replica]:
    return [
        Replica(server_uuid="ts1", addr="h1:9100", role="VOTER"),
        Replica(server_uuid="ts2", addr="h2:9100", role="VOTER"),
    ]


def _topology(databases, tables=(), shards=(), node: str = LEADER) -> Topology:
    return Topology(
        source_node=node,
        databases=tuple(databases),
        tables=tuple(tables),
        shards=tuple(shards),
    )


def _diff(first: Topology, second: Topology) -> TopologyDiff:
    return TopologyDiff.between([first], LEADER, [second], LEADER)


def _texts(first: Topology, second: Topology) -> list[str]:
    return [line_text(line) for line in diff_lines(_diff(first, second))]


def _shop() -> Topology:
    return _topology(
        [_db()],
        [_table(ORDERS, "orders")],
        [_shard("s1", ORDERS, leader="ts1", replicas=_replicas())],
    )


def test_identical_observations_have_no_changes():
    diff = _diff(_shop(), _shop())

    assert diff.changes() == {
        "databases": {},
        "tables": {},
        "shards": {},
        "replicas": {},
    }
    assert diff_lines(diff) == []


def test_dropped_ysql_database_is_removed_and_colocation_uses_first_side():
    root = colocation_root_table_id(D1)
    first = _topology(
        [_db()],
        [_table(ORDERS, "t1"), _table(ITEMS, "t2"), _table(USERS, "t3")],
        [
            _shard(
                "s0",
                root,
                leader="ts1",
                replicas=[Replica(server_uuid="ts1", addr="h1:9100", role="VOTER")],
            )
        ],
    )
    second = _topology([_db()])

    assert _texts(first, second) == [
        f"- Database: ysql.d1, id: {D1} [colocated]",
        f"- Object:   ysql.d1.t1, state: RUNNING, id: {ORDERS} [colocated]",
        f"- Object:   ysql.d1.t2, state: RUNNING, id: {ITEMS} [colocated]",
        f"- Object:   ysql.d1.t3, state: RUNNING, id: {USERS} [colocated]",
        "- Tablet:   ysql.d1.s0, state: RUNNING, leader: h1:9100",
        "- Replica:  ysql.d1.s0, addr: h1:9100, role: VOTER",
    ]
    assert _diff(first, second).classify_database(D1) is ChangeKind.REMOVED


def test_removed_table_of_colocated_database_is_marked_colocated():
    root = colocation_root_table_id(D1)
    first = _topology(
        [_db()],
        [_table(ARCHIVE, "archive"), _table(ORDERS, "orders")],
        [_shard("s0", root)],
    )
    second = _topology([_db()], [_table(ORDERS, "orders")], [_shard("s0", root)])

    assert _texts(first, second) == [
        f"- Object:   ysql.d1.archive, state: RUNNING, id: {ARCHIVE} [colocated]",
    ]


def test_added_ysql_catalog_table_is_suppressed():
    second = _shop()
    second = _topology(
        second.databases,
        (*second.tables, _table(PG_CLASS, "pg_class")),
        second.shards,
    )
    diff = _diff(_shop(), second)

    assert diff.changes()["tables"] == {PG_CLASS: ChangeKind.ADDED}
    assert diff.is_suppressed_table(PG_CLASS) is True
    assert diff_lines(diff) == []


def test_added_ycql_table_with_low_object_number_is_shown():
    ks = _db(D2, "ks", "ycql")
    table_id = "00004010000030008000000000000005"
    first = _topology([ks], [_table("a" * 32, "base", D2)])
    second = _topology(
        [ks], [_table("a" * 32, "base", D2), _table(table_id, "events", D2)]
    )

    assert _texts(first, second) == [
        f"+ Object:   ycql.ks.events, state: RUNNING, id: {table_id}",
    ]


def test_added_database():
    first = _shop()
    second = _topology(
        [_db(), _db(D2, "d2")],
        [_table(ORDERS, "orders"), _table("000040100000300080000000000040aa", "t", D2)],
        first.shards,
    )

    assert _texts(first, second) == [
        f"+ Database: ysql.d2, id: {D2}",
        "+ Object:   ysql.d2.t, state: RUNNING, id: 000040100000300080000000000040aa",
    ]


def test_shard_leader_change_shows_old_and_new_leader_address():
    first = _shop()
    second = _topology(
        [_db()],
        [_table(ORDERS, "orders")],
        [_shard("s1", ORDERS, leader="ts2", replicas=_replicas())],
    )

    assert _texts(first, second) == [
        "= Tablet:   ysql.d1.orders.s1, state: RUNNING, leader: h1:9100->h2:9100",
    ]


def test_modified_database_and_table_show_old_and_new_values():
    first = _shop()
    second = _topology(
        [_db(name="d1new")],
        [_table(ORDERS, "orders", state="DELETING")],
        first.shards,
    )

    assert _texts(first, second) == [
        f"= Database: ysql.d1->d1new, id: {D1}",
        f"= Object:   ysql.d1.orders, state: RUNNING->DELETING, id: {ORDERS}",
    ]


def test_renamed_database_takes_colocation_from_first_side():
    root = colocation_root_table_id(D1)
    first = _topology([_db()], [_table(ORDERS, "orders")], [_shard("s0", root)])
    second = _topology([_db(name="d1new")], [_table(ORDERS, "orders")])

    assert _texts(first, second) == [
        f"= Database: ysql.d1->d1new, id: {D1} [colocated]",
        "- Tablet:   ysql.d1.s0, state: RUNNING, leader: ",
    ]


def test_system_databases_are_hidden_from_diff():
    system_schema = "00000000000000000000000000000002"
    second = _topology(
        [_db(), _db(system_schema, "system_schema", "ycql")],
        [_table(ORDERS, "orders"), _table("c" * 32, "columns", system_schema)],
        _shop().shards,
    )

    forward = _diff(_shop(), second)
    backward = _diff(second, _shop())

    assert forward.changes()["databases"] == {system_schema: ChangeKind.ADDED}
    assert diff_lines(forward) == []
    assert diff_lines(backward) == []


def test_dangling_references_render_with_empty_names():
    ghost_db = "0000dead000030008000000000000000"
    ghost_table = "0000dead000030008000000000004001"
    second = _topology(
        [_db()],
        [_table(ORDERS, "orders"), _table(ghost_table, "ghost", ghost_db)],
        [*_shop().shards, _shard("s9", "f" * 32)],
    )

    assert _texts(_shop(), second) == [
        f"+ Object:   ..ghost, state: RUNNING, id: {ghost_table}",
        "+ Tablet:   ...s9, state: RUNNING, leader: ",
    ]
    assert _texts(second, _shop()) == [
        f"- Object:   ..ghost, state: RUNNING, id: {ghost_table}",
        "- Tablet:   ...s9, state: RUNNING, leader: ",
    ]


def test_replica_changes():
    first = _shop()
    moved = [
        Replica(server_uuid="ts1", addr="h1:9100", role="VOTER"),
        Replica(server_uuid="ts2", addr="h2:9100", role="OBSERVER"),
        Replica(server_uuid="ts3", addr="h3:9100", role="VOTER"),
    ]
    second = _topology(
        [_db()],
        [_table(ORDERS, "orders")],
        [_shard("s1", ORDERS, leader="ts1", replicas=moved)],
    )

    assert _texts(first, second) == [
        "= Replica:  ysql.d1.orders.s1, addr: h2:9100, role: VOTER->OBSERVER",
        "+ Replica:  ysql.d1.orders.s1, addr: h3:9100, role: VOTER",
    ]


def test_diff_is_symmetric_without_dropped_databases():
    first = _shop()
    second = _topology(
        [_db(), _db(D2, "d2", "ycql")],
        [_table(ORDERS, "orders", state="ALTERING"), _table("b" * 32, "t", D2)],
        [_shard("s1", ORDERS, leader="ts2", replicas=_replicas()[1:])],
    )
    swap = {
        ChangeKind.ADDED: ChangeKind.REMOVED,
        ChangeKind.REMOVED: ChangeKind.ADDED,
        ChangeKind.MODIFIED: ChangeKind.MODIFIED,
    }

    forward = _diff(first, second).changes()
    backward = _diff(second, first).changes()

    assert forward["databases"] == {D2: ChangeKind.ADDED}
    assert forward["replicas"] == {("s1", "ts1"): ChangeKind.REMOVED}
    for kind, changes in forward.items():
        assert backward[kind] == {key: swap[c] for key, c in changes.items()}


def test_duplicate_identifiers_keep_first_occurrence(caplog):
    first = _topology(
        [_db(), _db(name="shadow")],
        [_table(ORDERS, "orders"), _table(ORDERS, "orders_dup")],
        [_shard("s1", ORDERS), _shard("s1", ITEMS)],
    )

    with caplog.at_level(logging.ERROR, logger="topodiff.core.diff"):
        diff = _diff(first, first)

    assert diff.database_values(D1, Side.FIRST).name == "d1"
    assert diff.table_values(ORDERS, Side.SECOND).name == "orders"
    assert diff.shards["s1"].first.table_id == ORDERS
    assert "Duplicate database id entry" in caplog.text
    assert "Duplicate table id entry" in caplog.text
    assert "Duplicate shard id entry" in caplog.text
    assert diff_lines(diff) == []


def test_missing_leader_skips_diff():
    diff = TopologyDiff.between([_shop()], "", [_shop()], LEADER)
    lines = diff_lines(diff)

    assert diff.master_found is False
    assert [line.kind for line in lines] == [LineKind.NOTICE]
    assert line_text(lines[0]) == NO_MASTER_MESSAGE


def test_leader_without_topology_skips_diff():
    diff = TopologyDiff.between([_shop()], LEADER, [_shop()], "m9:7000")

    assert diff.master_found is False


def test_only_leader_topology_is_merged():
    follower = _topology([_db(D2, "stale")], node="m2:7000")

    diff = TopologyDiff.between([follower, _shop()], LEADER, [_shop(), follower], LEADER)

    assert D2 not in diff.databases
    assert diff_lines(diff) == []


def test_ysql_database_regaining_tables_is_logged_not_rendered(caplog):
    first = _topology([_db()])
    second = _topology([_db()], [_table(ORDERS, "orders")])

    with caplog.at_level(logging.ERROR, logger="topodiff.core.render"):
        texts = _texts(first, second)

    assert _diff(first, second).classify_database(D1) is ChangeKind.INCONSISTENT
    assert texts == [f"+ Object:   ysql.d1.orders, state: RUNNING, id: {ORDERS}"]
    assert "table count was zero, now is: 1" in caplog.text


def test_table_counts_follow_merges():
    diff = TopologyDiff()
    diff.merge_first([_shop()], LEADER)

    assert diff.table_count(D1, Side.FIRST) == 1
    assert diff.table_count(D1, Side.SECOND) == 0

    diff.merge_second([_shop()], LEADER)

    assert diff.table_count(D1, Side.SECOND) == 1
    assert diff.classify_database(D1) is ChangeKind.UNCHANGED
