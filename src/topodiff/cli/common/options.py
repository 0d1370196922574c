"""Common CLI options for the CLI."""

import typer

HostsOpt = typer.Option(
    "localhost",
    "--hosts",
    "-H",
    envvar="TOPODIFF_HOSTS",
    help="Comma separated master hostnames or addresses",
)

PortsOpt = typer.Option(
    "7000",
    "--ports",
    "-P",
    envvar="TOPODIFF_PORTS",
    help="Comma separated master web ports",
)

ParallelOpt = typer.Option(
    5,
    "--parallel",
    "-n",
    envvar="TOPODIFF_PARALLEL",
    help="Number of endpoints to read in parallel",
)

TimeoutOpt = typer.Option(
    10.0,
    "--timeout",
    envvar="TOPODIFF_HTTP_TIMEOUT",
    help="HTTP request timeout in seconds",
)

SnapshotDirOpt = typer.Option(
    None,
    "--snapshot-dir",
    envvar="TOPODIFF_SNAPSHOT_DIR",
    help="Snapshot root directory (default: $XDG_DATA_HOME/topodiff)",
)

VerboseOpt = typer.Option(
    0,
    "--verbose",
    "-v",
    count=True,
    help="Increase log verbosity (-v info, -vv debug)",
)

DetailsOpt = typer.Option(
    False,
    "--details",
    "-d",
    help="Show system objects and the topology of every node, not just the leader",
)

TableNameOpt = typer.Option(
    None,
    "--table-name",
    help="Regex on table name",
)

HostnameOpt = typer.Option(
    None,
    "--hostname",
    help="Regex on node host:port (only with --details)",
)

BeginOpt = typer.Option(
    None,
    "--begin",
    "-b",
    help="Begin snapshot number (prompted when omitted)",
)

EndOpt = typer.Option(
    None,
    "--end",
    "-e",
    help="End snapshot number (prompted when omitted)",
)

SnapshotOpt = typer.Option(
    None,
    "--snapshot",
    "-s",
    help="Show a stored snapshot instead of reading the cluster",
)

CommentOpt = typer.Option(
    "",
    "--comment",
    "-c",
    help="Comment stored with the snapshot",
)

ConfirmOpt = typer.Option(
    True,
    "--confirm/--no-confirm",
    help="Wait for confirmation before the second read",
)
