"""Logging setup for the CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from topodiff.cli.common.output import err_console

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int) -> None:
    """Route library logging through rich on stderr at the requested verbosity."""
    level = _LEVELS.get(verbosity, logging.DEBUG)
    handler = RichHandler(
        console=err_console,
        show_path=verbosity > 1,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # keep urllib3 connection chatter out of -vv output
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
