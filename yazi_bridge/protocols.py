"""
Protocols at the seams of yazi-bridge.

Services talk to two outside parties through these: the user (LoggerProtocol,
for short notices) and the host editor (EditorProtocol, for every action that
changes buffers, windows, tabs, registers or the quickfix list).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from yazi_bridge.schemas.operations.actions import QuickfixEntry


class LoggerProtocol(Protocol):
    """
    Protocol for async user-facing logger.

    Implementations:
    - CLILogger (cli/logger.py): Logs to stdout with optional verbose mode
    - EditorLogger (editor/logger.py): Logs to python logging and editor notifications
    - NullLogger (below): No-op implementation for when logging is optional
    """

    async def info(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class NullLogger:
    """
    Discards every notice.

    Default for services constructed without a logger (tests, library use).
    """

    async def info(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass


class EditorProtocol(Protocol):
    """
    Host editor capabilities consumed by the bridge.

    The editor's buffer, window, tab, register and quickfix models stay on the
    editor side; the bridge only issues these commands. Every command is a
    coroutine and must not block the event loop.

    Implementations:
    - NeovimEditor (editor/neovim.py): remote control over `nvim --server`
    - DetachedEditor (editor/detached.py): no editor, for a standalone rename
    """

    async def open_buffer(self, path: Path) -> None:
        """Edit `path` in the calling window."""
        ...

    async def open_split(self, path: Path, *, vertical: bool) -> None:
        """Open `path` in a new split next to the calling window."""
        ...

    async def open_tab(self, path: Path, window_options: Mapping[str, object]) -> None:
        """Open `path` in a new tab and apply `window_options` to its window."""
        ...

    async def get_window_options(self, names: Sequence[str]) -> dict[str, object]:
        """Current values of window-local options in the calling window."""
        ...

    async def set_reference_list(self, entries: Sequence[QuickfixEntry]) -> None:
        """Replace the quickfix list with `entries` and show it."""
        ...

    async def write_register(self, name: str, text: str) -> None: ...

    async def list_buffer_paths(self) -> list[Path]: ...

    async def rename_buffer_path(self, old: Path, new: Path) -> bool:
        """Point the buffer backed by `old` at `new` in place. False if no such buffer."""
        ...

    async def wipe_buffer(self, path: Path) -> bool:
        """Remove the buffer backed by `path`. False if no such buffer."""
        ...

    async def run_command(self, command: str) -> str:
        """Run an Ex command and return its output."""
        ...

    async def set_cwd(self, path: Path) -> None: ...

    async def notify(self, message: str, level: int = logging.INFO) -> None: ...
