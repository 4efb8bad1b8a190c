"""
Session - one binding of a yazi process to an editor tab or window region.

Sessions are owned by the SessionRegistry and passed explicitly into every
service; nothing about a session lives in module-level state.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import attrs

from yazi_bridge.paths import PathResolver
from yazi_bridge.schemas.operations.selection import CloseReason, RawState, SelectionSnapshot

if TYPE_CHECKING:
    from yazi_bridge.services.rename import BulkRenameTransaction
    from yazi_bridge.services.terminal import OutputCallback, TerminalSurface


@attrs.define(eq=False)
class Session:
    """
    Mutable per-region state.

    Only the ProcessBridge (and the SelectionTracker it drives) assigns
    `working_directory`, `snapshot`, `is_open` and `pending_reason`.
    """

    id: str
    region_id: str
    root_path: Path
    resolver: PathResolver
    working_directory: Path
    chooser_file: Path
    terminal: TerminalSurface
    output: OutputCallback | None = None
    size: tuple[int, int] = (24, 80)
    events: asyncio.subprocess.Process | None = None
    event_pump: asyncio.Task[None] | None = None

    is_open: bool = True
    snapshot: SelectionSnapshot | None = None
    pending_reason: CloseReason | None = None
    rename: BulkRenameTransaction | None = None
    # Set while the bridge waits for yazi to report its selection
    selection_request: asyncio.Future[RawState] | None = None
    # Close reasons that do not end the session (bulk rename)
    requests: asyncio.Queue[CloseReason] = attrs.field(factory=asyncio.Queue)

    @property
    def rename_in_progress(self) -> bool:
        return self.rename is not None and not self.rename.state.is_terminal

    def current_snapshot(self) -> SelectionSnapshot:
        """The tracked snapshot, or an empty one rooted at the working directory."""
        return self.snapshot or SelectionSnapshot(directory=self.working_directory)
