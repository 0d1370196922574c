import json
from datetime import datetime, timezone

import pytest

from topodiff.core.topology import Database, DatabaseKind, Topology

ENTITIES = {
    "keyspaces": [
        {
            "keyspace_id": "00000000000000000000000000000001",
            "keyspace_name": "system",
            "keyspace_type": "ycql",
        },
        {
            "keyspace_id": "0000400f000030008000000000000000",
            "keyspace_name": "shop",
            "keyspace_type": "ysql",
        },
        {
            "keyspace_id": "00004010000030008000000000000000",
            "keyspace_name": "dropped",
            "keyspace_type": "ysql",
        },
    ],
    "tables": [
        {
            "table_id": "000000010000300080000000000000af",
            "keyspace_id": "00000001000030008000000000000000",
            "table_name": "pg_user_mapping_user_server_index",
            "state": "RUNNING",
        },
        {
            "table_id": "0000400f000030008000000000004000",
            "keyspace_id": "0000400f000030008000000000000000",
            "table_name": "orders",
            "state": "RUNNING",
        },
    ],
    "tablets": [
        {
            "table_id": "sys.catalog.uuid",
            "tablet_id": "00000000000000000000000000000000",
            "state": "RUNNING",
        },
        {
            "table_id": "0000400f000030008000000000004000",
            "tablet_id": "235b5b031f094ec3bf6be2a023abebba",
            "state": "RUNNING",
            "replicas": [
                {
                    "type": "VOTER",
                    "server_uuid": "5b6fd994d7e34504ac48a5e653456704",
                    "addr": "yb-3.local:9100",
                },
                {
                    "type": "VOTER",
                    "server_uuid": "a3f5a16532bb4ed4a061e794831168f8",
                    "addr": "yb-1.local:9100",
                },
            ],
            "leader": "a3f5a16532bb4ed4a061e794831168f8",
        },
    ],
}


def test_from_json_parses_all_collections():
    observed = datetime(2024, 5, 1, tzinfo=timezone.utc)
    topology = Topology.from_json(
        json.dumps(ENTITIES), source_node="yb-1.local:7000", observed_at=observed
    )

    assert topology.source_node == "yb-1.local:7000"
    assert topology.observed_at == observed
    assert topology.databases[0].kind == DatabaseKind.YCQL
    assert topology.tables[0].name == "pg_user_mapping_user_server_index"
    assert topology.shards[0].table_id == "sys.catalog.uuid"
    assert topology.shards[0].leader is None
    assert topology.shards[0].replicas == ()
    assert topology.shards[1].replicas[0].server_uuid == "5b6fd994d7e34504ac48a5e653456704"
    assert topology.shards[1].leader == "a3f5a16532bb4ed4a061e794831168f8"
    assert topology.is_empty() is False


@pytest.mark.parametrize(
    "body",
    [
        "",
        "not json",
        "[]",
        "null",
        json.dumps({"keyspaces": [], "tables": []}),
        json.dumps({"keyspaces": {}, "tables": [], "tablets": []}),
    ],
)
def test_from_json_is_total(body: str):
    topology = Topology.from_json(body, source_node="m:7000")

    assert topology.source_node == "m:7000"
    assert topology.databases == ()
    assert topology.is_empty() is True


def test_from_json_skips_malformed_rows():
    payload = dict(ENTITIES)
    payload["tables"] = [{"table_id": "x"}, *ENTITIES["tables"], "junk"]
    topology = Topology.from_json(json.dumps(payload))

    assert [t.name for t in topology.tables] == [
        "pg_user_mapping_user_server_index",
        "orders",
    ]


def test_lookups():
    topology = Topology.from_dict(ENTITIES)
    shop = topology.database_by_id("0000400f000030008000000000000000")

    assert shop == Database(
        id="0000400f000030008000000000000000", name="shop", kind="ysql"
    )
    assert [t.name for t in topology.tables_for_database(shop.id)] == ["orders"]
    assert topology.table_count(shop.id) == 1
    shards = topology.shards_for_table("0000400f000030008000000000004000")
    assert [s.id for s in shards] == ["235b5b031f094ec3bf6be2a023abebba"]
    assert shards[0].leader_replica().addr == "yb-1.local:9100"
    assert shards[0].leader_replica().host == "yb-1.local"
    assert len(topology.replicas_for_shard("235b5b031f094ec3bf6be2a023abebba")) == 2
    assert topology.replicas_for_shard("missing") == []
    assert topology.database_by_id("missing") is None


def test_is_dropped_database_only_for_ysql_without_tables():
    topology = Topology.from_dict(ENTITIES)

    dropped = topology.database_by_id("00004010000030008000000000000000")
    shop = topology.database_by_id("0000400f000030008000000000000000")
    system = topology.database_by_id("00000000000000000000000000000001")

    assert topology.is_dropped_database(dropped) is True
    assert topology.is_dropped_database(shop) is False
    assert topology.is_dropped_database(system) is False


def test_stored_form_round_trips():
    observed = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    topology = Topology.from_dict(
        ENTITIES, source_node="yb-1.local:7000", observed_at=observed
    )

    restored = Topology.from_stored(json.loads(json.dumps(topology.to_dict())))

    assert restored == topology
