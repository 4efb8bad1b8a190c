#!/usr/bin/env python3
"""
Command-line interface for yazi-bridge.

`open` is meant to run inside a Neovim `:terminal` (for example through
`:terminal yazi-bridge open %`): it shows yazi in that terminal and carries out
the chosen action in the Neovim that owns it ($NVIM).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import pydantic
import typer

from yazi_bridge.cli.logger import CLILogger
from yazi_bridge.cli.terminal_io import TerminalProxy
from yazi_bridge.config.bridge import BridgeSettings, settings as lazy_bridge_settings
from yazi_bridge.editor.detached import DetachedEditor
from yazi_bridge.editor.logger import EditorLogger
from yazi_bridge.editor.neovim import NeovimEditor
from yazi_bridge.exceptions import NoSelection, RenameError, YaziBridgeError
from yazi_bridge.protocols import EditorProtocol, LoggerProtocol
from yazi_bridge.schemas.operations.rename import RenamePlan, RenameState
from yazi_bridge.schemas.operations.selection import CloseReason
from yazi_bridge.services.bridge import ProcessBridge
from yazi_bridge.services.dispatcher import ActionDispatcher
from yazi_bridge.services.health import check_health
from yazi_bridge.services.registry import SessionRegistry
from yazi_bridge.services.rename import BulkRenameTransaction

app = typer.Typer(
    name='yazi-bridge',
    help='Use the yazi file manager from inside Neovim',
    add_completion=False,
)

log = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def _load_settings() -> BridgeSettings:
    try:
        # First access reads the environment (and LOAD_ENV_FILE)
        return lazy_bridge_settings.__wrapped__
    except (pydantic.ValidationError, FileNotFoundError) as e:
        typer.secho(f'Error: Invalid configuration: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e


def _configure_logging(settings: BridgeSettings, *, terminal_owned: bool) -> None:
    """Send python logging to LOG_FILE, or to stderr unless yazi owns the terminal."""
    if settings.LOG_FILE is not None:
        handler: logging.Handler = logging.FileHandler(settings.LOG_FILE, encoding='utf-8')
    elif terminal_owned:
        handler = logging.NullHandler()
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=settings.LOG_LEVEL, handlers=[handler], force=True)


@app.command('open')
def open_(
    path: Path | None = typer.Argument(None, help='File or directory to start on (default: current directory)'),
    server: str | None = typer.Option(None, '--server', help='Neovim server address (default: $NVIM)'),
    region: str | None = typer.Option(None, '--region', help='Editor tab/window the session belongs to'),
    window: int | None = typer.Option(None, '--window', help='Window-ID the actions apply to'),
) -> None:
    """Browse with yazi and open, split, tab, quickfix, yank or rename the selection."""
    settings = _load_settings()
    _configure_logging(settings, terminal_owned=True)
    asyncio.run(_open_async(settings, path or Path.cwd(), server, region, window))


@app.command()
def rename(
    paths: list[Path] = typer.Argument(..., help='Files to rename (all in one directory)'),
    server: str | None = typer.Option(None, '--server', help='Neovim server whose buffers follow the renames'),
    yes: bool = typer.Option(False, '--yes', '-y', help='Apply without asking for confirmation'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Edit the names of PATHS in $EDITOR and rename the files that changed."""
    settings = _load_settings()
    _configure_logging(settings, terminal_owned=False)
    asyncio.run(_rename_async(settings, paths, server, yes, verbose))


@app.command()
def health() -> None:
    """Check that yazi, ya and nvim are installed and recent enough."""
    settings = _load_settings()
    _configure_logging(settings, terminal_owned=False)

    report = check_health(settings)
    for tool in (report.yazi, report.ya, report.nvim):
        if tool.found:
            typer.secho(f'✓ {tool.name} {tool.version or "(unknown version)"}: {tool.path}', fg=typer.colors.GREEN)
        else:
            typer.secho(f'✗ {tool.name}: not found', fg=typer.colors.RED)

    for problem in report.problems():
        typer.secho(f'Error: {problem}', fg=typer.colors.RED, err=True)
    if not report.ok:
        raise typer.Exit(1)


# ==============================================================================
# Async implementations
# ==============================================================================


async def _open_async(
    settings: BridgeSettings,
    path: Path,
    server: str | None,
    region: str | None,
    window: int | None,
) -> None:
    """Async implementation of open command."""
    try:
        editor = NeovimEditor(server, nvim_binary=settings.NVIM_BINARY, window_id=window)
        logger = EditorLogger(editor)
        bridge = ProcessBridge(editor, settings, logger=logger)
        dispatcher = ActionDispatcher(editor, settings, rename_handler=bridge.start_rename, logger=logger)
        registry = SessionRegistry(bridge, settings)
        region_id = region or str(window or 0)

        proxy = TerminalProxy(sys.stdin.fileno(), sys.stdout.fileno())
        with proxy.raw_mode():
            session = await registry.open(region_id, path, output=proxy.write, size=proxy.size)
            try:
                with proxy.attached(
                    lambda keys: bridge.send_keys(session, keys),
                    lambda rows, cols: bridge.resize(session, rows, cols),
                ):
                    await serve_session(registry, dispatcher, region_id, logger)
            finally:
                await registry.close_all()

    except YaziBridgeError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e


async def serve_session(
    registry: SessionRegistry,
    dispatcher: ActionDispatcher,
    region_id: str,
    logger: LoggerProtocol,
) -> None:
    """
    Dispatch close events for the region's session until yazi has exited.

    Bulk renames run while yazi stays open. An empty selection is only a
    notice (the dispatcher already reported it); a failed rename is reported
    and browsing continues.
    """
    session = registry.get(region_id)
    assert session is not None
    while True:
        event = await registry.wait_for_close(region_id)
        try:
            await dispatcher.on_close(session, event.reason, event.snapshot)
        except NoSelection as e:
            log.info('%s', e)
        except RenameError as e:
            await logger.error(str(e))
        if event.reason is not CloseReason.RENAME_REQUESTED:
            return


async def _rename_async(
    settings: BridgeSettings,
    paths: list[Path],
    server: str | None,
    yes: bool,
    verbose: bool,
) -> None:
    """Async implementation of rename command."""
    logger = CLILogger(verbose=verbose)

    try:
        missing = [p for p in paths if not p.exists()]
        if missing:
            typer.secho(f'Error: No such file: {missing[0]}', fg=typer.colors.RED, err=True)
            raise typer.Exit(1)

        editor: EditorProtocol = DetachedEditor()
        if server is not None:
            editor = NeovimEditor(server, nvim_binary=settings.NVIM_BINARY)

        proxy = TerminalProxy(sys.stdin.fileno(), sys.stdout.fileno())

        async def confirm_all(_plan: RenamePlan) -> bool:
            return True

        transaction = BulkRenameTransaction(
            [p.absolute() for p in paths],
            editor=editor,
            settings=settings,
            output=proxy.write,
            size=proxy.size,
            confirm=confirm_all if yes else None,
            logger=logger,
        )

        async def feed(keys: bytes) -> None:
            transaction.feed_keys(keys)

        with proxy.raw_mode(), proxy.attached(feed, transaction.resize):
            await transaction.start()
            result = await transaction.wait()

        if result.state is RenameState.APPLIED:
            typer.secho(f'✓ Renamed {len(result.renamed)} file(s)', fg=typer.colors.GREEN)
            for change in result.renamed:
                typer.echo(f'  {change.source.name} -> {change.target.name}')
        else:
            typer.secho('Rename cancelled, nothing changed', fg=typer.colors.YELLOW)

    except YaziBridgeError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e


def main() -> None:
    app()


if __name__ == '__main__':
    main()
