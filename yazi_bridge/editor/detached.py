"""
Detached editor - stands in for Neovim when the CLI runs without one.

A standalone `yazi-bridge rename` has no buffers to keep in sync, so buffer
queries report nothing; window, register and quickfix commands are refused.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

from yazi_bridge.exceptions import EditorError
from yazi_bridge.schemas.operations.actions import QuickfixEntry

__all__ = ['DetachedEditor']

logger = logging.getLogger(__name__)


class DetachedEditor:
    """EditorProtocol implementation with no editor behind it."""

    async def open_buffer(self, path: Path) -> None:
        raise EditorError('open_buffer', 'no editor attached')

    async def open_split(self, path: Path, *, vertical: bool) -> None:
        raise EditorError('open_split', 'no editor attached')

    async def open_tab(self, path: Path, window_options: Mapping[str, object]) -> None:
        raise EditorError('open_tab', 'no editor attached')

    async def get_window_options(self, names: Sequence[str]) -> dict[str, object]:
        return {}

    async def set_reference_list(self, entries: Sequence[QuickfixEntry]) -> None:
        raise EditorError('set_reference_list', 'no editor attached')

    async def write_register(self, name: str, text: str) -> None:
        raise EditorError('write_register', 'no editor attached')

    async def list_buffer_paths(self) -> list[Path]:
        return []

    async def rename_buffer_path(self, old: Path, new: Path) -> bool:
        return False

    async def wipe_buffer(self, path: Path) -> bool:
        return False

    async def run_command(self, command: str) -> str:
        raise EditorError(command, 'no editor attached')

    async def set_cwd(self, path: Path) -> None:
        raise EditorError('set_cwd', 'no editor attached')

    async def notify(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
