"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from topodiff.cli.common.exits import die
from topodiff.core.adapters.http import MasterHttpAdapter
from topodiff.core.adapters.store import SnapshotStore


@dataclass
class AppContext:
    """Application context holding cluster endpoints, adapter and snapshot store."""

    hosts: list[str]
    ports: list[str]
    parallel: int
    adapter: MasterHttpAdapter
    store: SnapshotStore


def split_csv(value: str) -> list[str]:
    """Split a comma separated option value, dropping empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def build_context(
    *,
    hosts: str,
    ports: str,
    parallel: int,
    timeout: float,
    snapshot_dir: Path | None,
) -> AppContext:
    """Build and return the application context.

    Args:
        hosts: Comma separated master hosts.
        ports: Comma separated master web ports.
        parallel: Maximum number of concurrent HTTP requests.
        timeout: HTTP request timeout in seconds.
        snapshot_dir: Snapshot root override, or None for the default.

    Returns:
        AppContext: Application context with configured adapter and store.
    """
    host_list = split_csv(hosts)
    port_list = split_csv(ports)
    if not host_list or not port_list:
        die("At least one host and one port are required.", code=2)
    if parallel < 1:
        die("--parallel must be >= 1", code=2)
    return AppContext(
        hosts=host_list,
        ports=port_list,
        parallel=parallel,
        adapter=MasterHttpAdapter(timeout=timeout),
        store=SnapshotStore(snapshot_dir),
    )
