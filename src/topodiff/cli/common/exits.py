"""Exit handling utilities for the CLI.

Commands leave through these helpers so every failure ends with one message
on stderr and a meaningful exit code, never a traceback.
"""

from contextlib import contextmanager
from typing import Iterator, NoReturn

import typer

from topodiff.cli.common.output import out
from topodiff.core.adapters.store import SnapshotIndexError, SnapshotNotFoundError
from topodiff.core.colocation import ColocationLookupError

LOOKUP_ERRORS = (SnapshotNotFoundError, SnapshotIndexError, ColocationLookupError)


def ok_exit(msg: str | None = None) -> NoReturn:
    """Exit with code 0, optionally telling the user why."""
    if msg:
        out.info(msg)
    raise typer.Exit(0)


def die(msg: str, code: int = 1) -> NoReturn:
    out.error(msg)
    raise typer.Exit(code)


def warn_exit(msg: str, code: int = 0) -> NoReturn:
    out.warn(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = 1) -> NoReturn:
    """Print `message` and exit, keeping `exc` as the cause."""
    out.error(message)
    raise typer.Exit(code) from exc


@contextmanager
def lookup_errors_exit(code: int = 1) -> Iterator[None]:
    """Turn snapshot store and colocation lookup failures into an exit."""
    try:
        yield
    except LOOKUP_ERRORS as exc:
        exit_from_exc(exc, message=str(exc), code=code)
