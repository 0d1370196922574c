"""Commands for capturing and listing snapshots."""

from __future__ import annotations

from pathlib import Path

import typer

from topodiff.cli.common.context import AppContext, build_context
from topodiff.cli.common.exits import lookup_errors_exit, warn_exit
from topodiff.cli.common.options import (
    CommentOpt,
    HostsOpt,
    ParallelOpt,
    PortsOpt,
    SnapshotDirOpt,
    TimeoutOpt,
)
from topodiff.cli.common.output import out
from topodiff.core.snapshots import perform_snapshot

app = typer.Typer(
    help="Capture and list topology snapshots",
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


@app.command()
def create(
    ctx: typer.Context,
    comment: str = CommentOpt,
):
    """
    Capture entities, master leader and health into a new snapshot.
    """
    appctx: AppContext = ctx.obj

    with lookup_errors_exit(), out.status("Capturing snapshot..."):
        number = perform_snapshot(
            appctx.store,
            appctx.adapter,
            appctx.hosts,
            appctx.ports,
            max_parallel=appctx.parallel,
            comment=comment,
        )

    out.success(f"Snapshot {number} created in {appctx.store.root}")


@app.command("list")
def list_(ctx: typer.Context):
    """
    List stored snapshots.
    """
    appctx: AppContext = ctx.obj
    with lookup_errors_exit():
        snapshots = appctx.store.list_snapshots()

    if not snapshots:
        warn_exit("No snapshots found.", code=0)

    out.snapshots_table(snapshots, title=f"Snapshots in {appctx.store.root}")
