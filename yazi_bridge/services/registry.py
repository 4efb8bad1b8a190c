"""
Session registry - owns every open Session, keyed by editor region.

A region is an editor tab or window; it has at most one session. Sessions are
created on demand and dropped as soon as their yazi process is gone.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.domain.session import Session
from yazi_bridge.exceptions import ProcessExited
from yazi_bridge.schemas.operations.selection import CloseEvent, CloseReason
from yazi_bridge.services.bridge import ProcessBridge
from yazi_bridge.services.terminal import OutputCallback

__all__ = ['SessionRegistry']

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Creates, looks up and destroys sessions through the ProcessBridge."""

    def __init__(self, bridge: ProcessBridge, settings: BridgeSettings) -> None:
        self.bridge = bridge
        self.settings = settings
        self._sessions: dict[str, Session] = {}

    def get(self, region_id: str) -> Session | None:
        return self._sessions.get(region_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._sessions

    async def open(
        self,
        region_id: str,
        root: Path | str,
        *,
        extra_paths: Sequence[Path] = (),
        output: OutputCallback | None = None,
        size: tuple[int, int] = (24, 80),
    ) -> Session:
        """
        Return the open session for `region_id`, starting one if needed.

        With OPEN_MULTIPLE_TABS, every file the editor has open (besides the
        root) is passed to yazi as an extra tab.

        Raises:
            LaunchError: If yazi cannot be started; nothing is registered
        """
        existing = self._sessions.get(region_id)
        if existing is not None and existing.is_open:
            return existing
        if existing is not None:
            await self.destroy(region_id)

        paths = list(extra_paths)
        if self.settings.OPEN_MULTIPLE_TABS and not paths:
            root_path = Path(root).expanduser().absolute()
            paths = [p for p in await self.bridge.editor.list_buffer_paths() if p != root_path and p.exists()]

        session = await self.bridge.open(root, region_id, extra_paths=paths, output=output, size=size)
        self._sessions[region_id] = session
        return session

    async def wait_for_close(self, region_id: str) -> CloseEvent:
        """
        Wait for the region's session to close.

        The session is unregistered once yazi has exited (including when it
        crashed); a rename request keeps it registered.

        Raises:
            KeyError: If the region has no session
            ProcessExited: If yazi exited with an error
        """
        session = self._sessions[region_id]
        try:
            event = await self.bridge.wait_for_close(session)
        except ProcessExited:
            self._forget(region_id, session)
            raise

        if event.reason is not CloseReason.RENAME_REQUESTED:
            self._forget(region_id, session)
        return event

    async def destroy(self, region_id: str) -> None:
        """Close and unregister the region's session. No-op for unknown regions."""
        session = self._sessions.pop(region_id, None)
        if session is None:
            return
        await self.bridge.close(session)

    async def close_all(self) -> None:
        for region_id in list(self._sessions):
            await self.destroy(region_id)

    def _forget(self, region_id: str, session: Session) -> None:
        if self._sessions.get(region_id) is session:
            del self._sessions[region_id]
            logger.debug('Session %s for region %s removed', session.id, region_id)
