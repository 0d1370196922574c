"""CLI application for cluster topology snapshots and diffs."""

import typer

from topodiff.cli.commands.entities import app as entities_app
from topodiff.cli.commands.snapshots import app as snapshots_app
from topodiff.cli.common.logs import configure_logging
from topodiff.cli.common.options import VerboseOpt

app = typer.Typer(
    help="topodiff - cluster topology snapshots and diffs",
    no_args_is_help=True,
)


@app.callback()
def _main(verbose: int = VerboseOpt):
    """Configure logging for all commands."""
    configure_logging(verbose)


app.add_typer(
    entities_app, name="entities", help="Show and diff the cluster object topology."
)
app.add_typer(snapshots_app, name="snapshot", help="Capture and list snapshots.")


if __name__ == "__main__":
    app()
