"""
Buffer sync - keeps editor buffers in step with file operations done inside yazi.

yazi reports renames, moves and deletions on its event stream. Buffers backed
by a renamed or moved file are pointed at the new path in place (undo history,
cursor and window layout survive); buffers of deleted or trashed files are
wiped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from yazi_bridge.protocols import EditorProtocol
from yazi_bridge.schemas.events import BulkBody, DeleteBody, MoveBody, RenameBody, TrashBody, YaziEvent

__all__ = ['BufferSync']

logger = logging.getLogger(__name__)


class BufferSync:
    """Applies yazi file-operation events to editor buffers."""

    def __init__(self, editor: EditorProtocol) -> None:
        self.editor = editor

    async def handle(self, event: YaziEvent) -> int:
        """
        Apply one event.

        Returns:
            Number of buffers renamed or wiped (0 for unrelated events)
        """
        match event.body:
            case RenameBody(from_=old, to=new):
                return await self._rename([(Path(old), Path(new))])
            case MoveBody(items=items):
                return await self._rename((Path(item.from_), Path(item.to)) for item in items)
            case BulkBody(changes=changes):
                return await self._rename((Path(old), Path(new)) for old, new in changes.items())
            case DeleteBody(urls=urls) | TrashBody(urls=urls):
                return await self._wipe(Path(url) for url in urls)
            case _:
                return 0

    async def _rename(self, pairs: Iterable[tuple[Path, Path]]) -> int:
        pairs = list(pairs)
        buffer_paths = await self.editor.list_buffer_paths()
        count = 0
        for old, new in pairs:
            for buffer_path in buffer_paths:
                # A renamed directory moves every buffer underneath it
                if buffer_path == old or buffer_path.is_relative_to(old):
                    target = new / buffer_path.relative_to(old)
                    if await self.editor.rename_buffer_path(buffer_path, target):
                        logger.debug('Buffer %s now points at %s', buffer_path, target)
                        count += 1
        return count

    async def _wipe(self, paths: Iterable[Path]) -> int:
        removed = list(paths)
        count = 0
        for buffer_path in await self.editor.list_buffer_paths():
            if any(buffer_path == p or buffer_path.is_relative_to(p) for p in removed):
                if await self.editor.wipe_buffer(buffer_path):
                    logger.debug('Wiped buffer for removed file %s', buffer_path)
                    count += 1
        return count
