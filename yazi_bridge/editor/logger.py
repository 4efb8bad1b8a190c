"""
Editor logger adapter - implements LoggerProtocol for sessions driven from Neovim.

Messages go to python logging (the log file) and to the editor's notification
area, so the user sees them even though the terminal belongs to yazi.
"""

from __future__ import annotations

import logging

from yazi_bridge.exceptions import EditorError
from yazi_bridge.protocols import EditorProtocol

logger = logging.getLogger(__name__)


class EditorLogger:
    """Logs messages to both python logging and editor notifications."""

    def __init__(self, editor: EditorProtocol) -> None:
        self.editor = editor

    async def info(self, message: str) -> None:
        await self._emit(logging.INFO, message)

    async def warning(self, message: str) -> None:
        await self._emit(logging.WARNING, message)

    async def error(self, message: str) -> None:
        await self._emit(logging.ERROR, message)

    async def _emit(self, level: int, message: str) -> None:
        logger.log(level, message)
        try:
            await self.editor.notify(message, level)
        except EditorError as e:
            logger.warning('Could not notify editor: %s', e)
