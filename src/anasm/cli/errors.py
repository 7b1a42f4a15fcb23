"""
CLI Error Handling
==================

Exit codes and the last-resort exception handler for the ``anasm`` command.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from anasm.errors import AnasmError


class ExitCode(IntEnum):
    """Exit codes of the anasm command."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Assembly failed or the artifact could not be read
    INVALID_ARGS = 2     # Invalid arguments or unreadable input
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Print an exception that escaped the command and exit.

    Args:
        error: The exception that was raised
        verbose: If True, print the traceback for internal errors
        error_type: Optional prefix for the message (e.g. "Disassembly")

    Raises:
        SystemExit: Always
    """
    prefix = f"{error_type} error: " if error_type else "Error: "

    if isinstance(error, (AnasmError, ValueError)):
        # Malformed artifacts surface as ValueError from the reader
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, OSError):
        # Missing or unreadable files, permission denied
        name = f"'{error.filename}': " if error.filename else ""
        click.echo(f"Error: {name}{error.strerror or error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
