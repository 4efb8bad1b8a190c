"""
CLI logger adapter - implements LoggerProtocol for command-line usage.

Only used by commands that own a normal (cooked) terminal: `rename` and
`health`. An `open` session logs through the editor instead.
"""

from __future__ import annotations

import typer


class CLILogger:
    """
    Logger implementation for CLI (implements LoggerProtocol from protocols).

    Info goes to stdout in verbose mode; warnings and errors always go to stderr.
    """

    def __init__(self, verbose: bool = False) -> None:
        """
        Initialize CLI logger.

        Args:
            verbose: If True, show info messages. If False, only warnings/errors.
        """
        self.verbose = verbose

    async def info(self, message: str) -> None:
        if self.verbose:
            typer.echo(message)

    async def warning(self, message: str) -> None:
        typer.secho(f'Warning: {message}', fg=typer.colors.YELLOW, err=True)

    async def error(self, message: str) -> None:
        typer.secho(f'Error: {message}', fg=typer.colors.RED, err=True)
