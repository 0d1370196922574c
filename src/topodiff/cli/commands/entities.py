"""Commands for viewing and diffing the cluster object topology."""

from __future__ import annotations

import re
from pathlib import Path

import typer

from topodiff.cli.common.context import AppContext, build_context
from topodiff.cli.common.exits import die, lookup_errors_exit, ok_exit, warn_exit
from topodiff.cli.common.options import (
    BeginOpt,
    ConfirmOpt,
    DetailsOpt,
    EndOpt,
    HostnameOpt,
    HostsOpt,
    ParallelOpt,
    PortsOpt,
    SnapshotDirOpt,
    SnapshotOpt,
    TableNameOpt,
    TimeoutOpt,
)
from topodiff.cli.common.output import out
from topodiff.core.colocation import find_colocated_leader_host
from topodiff.core.leader import fetch_health
from topodiff.core.render import diff_lines, topology_lines
from topodiff.core.snapshots import (
    adhoc_diff,
    load_health,
    load_snapshot,
    read_live,
    snapshot_diff,
)

app = typer.Typer(
    help="Show and diff databases, tables, tablets and replicas",
    no_args_is_help=False,
    invoke_without_command=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    hosts: str = HostsOpt,
    ports: str = PortsOpt,
    parallel: int = ParallelOpt,
    timeout: float = TimeoutOpt,
    snapshot_dir: Path | None = SnapshotDirOpt,
):
    """Initialize cluster and snapshot store context."""
    ctx.obj = build_context(
        hosts=hosts,
        ports=ports,
        parallel=parallel,
        timeout=timeout,
        snapshot_dir=snapshot_dir,
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


def _compile_regex_or_exit(pattern: str | None, *, option_name: str) -> re.Pattern | None:
    """Compile a regex pattern and convert invalid syntax into CLI input errors."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        out.error(f"Invalid regex for {option_name}: {exc}")
        raise typer.Exit(2) from exc


def _choose_snapshot(appctx: AppContext, message: str) -> int:
    """Let the user pick a stored snapshot."""
    with lookup_errors_exit():
        snapshots = appctx.store.list_snapshots()
    if not snapshots:
        warn_exit("No snapshots found.", code=1)
    choices = [
        f"{s.number}  {s.timestamp.astimezone():%Y-%m-%d %H:%M:%S}  {s.comment}".rstrip()
        for s in snapshots
    ]
    picked = out.select_one(message, choices)
    if not picked:
        ok_exit("Cancelled")
    return int(picked.split(maxsplit=1)[0])


@app.command()
def show(
    ctx: typer.Context,
    snapshot: int | None = SnapshotOpt,
    details: bool = DetailsOpt,
    table_name: str | None = TableNameOpt,
    hostname: str | None = HostnameOpt,
):
    """
    Show the object topology of the master leader (or of every master with --details).
    """
    appctx: AppContext = ctx.obj
    table_rx = _compile_regex_or_exit(table_name, option_name="--table-name")
    host_rx = _compile_regex_or_exit(hostname, option_name="--hostname")

    if snapshot is not None:
        with lookup_errors_exit():
            topologies, leader = load_snapshot(appctx.store, snapshot)
            health = load_health(appctx.store, snapshot)
    else:
        with out.status("Reading entities..."):
            topologies, leader = read_live(
                appctx.adapter,
                appctx.hosts,
                appctx.ports,
                max_parallel=appctx.parallel,
            )
            health = fetch_health(appctx.adapter, leader)

    if not leader and not details:
        die("Master leader was not found in hosts specified.", code=1)

    out.lines(
        topology_lines(
            topologies,
            leader=leader,
            details=details,
            table_filter=table_rx,
            host_filter=host_rx,
            health=health,
        )
    )


@app.command()
def diff(
    ctx: typer.Context,
    begin: int | None = BeginOpt,
    end: int | None = EndOpt,
):
    """
    Diff the topology of two stored snapshots.
    """
    appctx: AppContext = ctx.obj

    if begin is None:
        begin = _choose_snapshot(appctx, "Select the begin snapshot:")
    if end is None:
        end = _choose_snapshot(appctx, "Select the end snapshot:")

    with lookup_errors_exit():
        result = snapshot_diff(appctx.store, begin, end)

    out.header(f"Entity diff: snapshot {begin} -> {end}")
    out.lines(diff_lines(result))


@app.command("adhoc-diff")
def adhoc(
    ctx: typer.Context,
    confirm: bool = ConfirmOpt,
):
    """
    Read the cluster twice and diff the two reads.
    """
    appctx: AppContext = ctx.obj

    def _read():
        with out.status("Reading entities..."):
            return read_live(
                appctx.adapter,
                appctx.hosts,
                appctx.ports,
                max_parallel=appctx.parallel,
            )

    def _read_second():
        if confirm and not out.confirm("First read done. Read the cluster again?"):
            ok_exit("Cancelled")
        return _read()

    result = adhoc_diff(_read, _read_second)
    out.header("Entity diff: adhoc")
    out.lines(diff_lines(result))


@app.command("coloc-leader")
def coloc_leader(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Name of a colocated ysql database"),
):
    """
    Print the host of the leader of a colocated database's root tablet.
    """
    appctx: AppContext = ctx.obj

    with out.status("Reading entities..."):
        topologies, leader = read_live(
            appctx.adapter,
            appctx.hosts,
            appctx.ports,
            max_parallel=appctx.parallel,
        )

    with lookup_errors_exit():
        host = find_colocated_leader_host(topologies, leader, database)

    typer.echo(host)
