"""Identifier decoding rules.

YSQL database ids are 32 character hexadecimal UUID-like strings with an
interpretable layout:

    | 0  1  2  3| 4  6| 7| 8| 9|10 11|12 13 14 15|
    |00 00 33 e5|00 00|30|00|80|00 00|00 00 00 00|
     database oid     ver   var      object oid

The last four bytes carry the object oid. Anything below 16384 is a catalog
object created by the database engine itself. YCQL ids are random UUIDs and
carry no such structure.
"""

from __future__ import annotations

import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from topodiff.core.topology import Database, Topology

OBJECT_ID_LENGTH = 32
OBJECT_NUMBER_OFFSET = 24
FIRST_USER_OBJECT_NUMBER = 16384

_COLOCATION_ROOT_SUFFIX = ".colocated.parent.uuid"

SYSTEM_DATABASE_IDS = frozenset(
    {
        "00000000000000000000000000000001",  # ycql system
        "00000000000000000000000000000002",  # ycql system_schema
        "00000000000000000000000000000003",  # ycql system_auth
        "00000001000030008000000000000000",  # ysql template1
        "000033e5000030008000000000000000",  # ysql template0
    }
)


def decode_object_number(object_id: str) -> int:
    """
    Return the object oid embedded in a 32 character hexadecimal id.

    Ids of any other length (such as the `sys.catalog.uuid` table id of the
    master catalog shard) and ids that are not hexadecimal decode to 0.
    """
    if len(object_id) != OBJECT_ID_LENGTH:
        return 0
    segment = object_id[OBJECT_NUMBER_OFFSET:]
    # int() would also take signs, underscores and a 0x prefix
    if not all(c in string.hexdigits for c in segment):
        return 0
    return int(segment, 16)


def is_catalog_object(object_id: str) -> bool:
    """Return True if the id decodes to a catalog (system) object number."""
    return decode_object_number(object_id) < FIRST_USER_OBJECT_NUMBER


def colocation_root_table_id(database_id: str) -> str:
    """Return the table id a colocated database's root shard points at."""
    return f"{database_id}{_COLOCATION_ROOT_SUFFIX}"


def colocation_root_owner(table_id: str) -> str | None:
    """Return the database id of a colocation root table id, else None."""
    if not table_id.endswith(_COLOCATION_ROOT_SUFFIX):
        return None
    return table_id[: -len(_COLOCATION_ROOT_SUFFIX)] or None


def is_colocation_root_shard_id(database_id: str, table_id: str) -> bool:
    """Return True if `table_id` is the colocation root of `database_id`."""
    return table_id == colocation_root_table_id(database_id)


def is_system_database(database_id: str) -> bool:
    """Return True for the well-known system/template database ids."""
    return database_id in SYSTEM_DATABASE_IDS


def is_colocated_database(topology: Topology, database: Database) -> bool:
    """
    Return True if the database is a live, colocated YSQL database.

    A dropped YSQL database keeps its entry but loses its tables, so a
    database without tables is never reported as colocated.
    """
    if not database.is_ysql:
        return False
    if topology.table_count(database.id) == 0:
        return False
    return topology.colocation_root_shard(database.id) is not None
