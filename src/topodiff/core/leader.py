"""Master leader resolution and health annotations.

Only the topology read from the master leader is authoritative, so every
view and diff starts by finding out which `host:port` is the leader. An
empty string means no leader was found among the given endpoints.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthReport:
    """
    Health annotations reported by the master leader.

    Attributes:
        dead_nodes: server_uuids of tablet servers considered dead.
        under_replicated: ids of shards with fewer replicas than required.
    """

    dead_nodes: frozenset[str] = frozenset()
    under_replicated: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, payload: Any) -> HealthReport:
        if not isinstance(payload, dict):
            return cls()
        return cls(
            dead_nodes=frozenset(_str_list(payload.get("dead_nodes"))),
            under_replicated=frozenset(
                _str_list(payload.get("under_replicated_tablets"))
            ),
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "dead_nodes": sorted(self.dead_nodes),
            "under_replicated_tablets": sorted(self.under_replicated),
        }


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


class LeaderAdapter(Protocol):
    """Interface for probing masters for leadership and health."""

    def is_leader(self, host: str, port: str) -> bool:
        ...

    def health_check(self, host: str, port: str) -> HealthReport:
        ...


def resolve_leader_http(
    adapter: LeaderAdapter,
    hosts: Iterable[str],
    ports: Iterable[str],
    *,
    max_parallel: int,
) -> str:
    """
    Probe every (host, port) pair and return the leader as `host:port`.

    Returns an empty string if no endpoint answers as leader. If more than
    one answers (a leader change during the probe), the first in
    host/port order wins.
    """
    if max_parallel < 1:
        raise ValueError("max_parallel must be >= 1")

    endpoints = [(host, port) for host in hosts for port in ports]
    if not endpoints:
        return ""

    leaders: set[tuple[str, str]] = set()
    with ThreadPoolExecutor(max_workers=max_parallel) as pool:
        futures = {
            pool.submit(adapter.is_leader, host, port): (host, port)
            for host, port in endpoints
        }
        for f in as_completed(futures):
            if f.result():
                leaders.add(futures[f])

    for host, port in endpoints:
        if (host, port) in leaders:
            logger.info("master leader: %s:%s", host, port)
            return f"{host}:{port}"

    logger.info("no master leader found in %d endpoint(s)", len(endpoints))
    return ""


def fetch_health(adapter: LeaderAdapter, leader: str) -> HealthReport:
    """Return the leader's health report (empty if there is no leader)."""
    if not leader or ":" not in leader:
        return HealthReport()
    host, port = leader.rsplit(":", 1)
    return adapter.health_check(host, port)
