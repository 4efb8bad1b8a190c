"""
Selection schemas.

Models describing what the user is pointing at in yazi and why the session
ended.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Literal

from yazi_bridge.schemas.types import BaseStrictModel


class CloseReason(enum.Enum):
    """Why the user left the file manager. Each reason maps to exactly one action."""

    OPEN = 'open'
    OPEN_VSPLIT = 'open_vsplit'
    OPEN_HSPLIT = 'open_hsplit'
    OPEN_TAB = 'open_tab'
    QUICKFIX_ALL = 'quickfix_all'
    YANK_PATHS = 'yank_paths'
    CANCELLED = 'cancelled'
    RENAME_REQUESTED = 'rename_requested'


class RawState(BaseStrictModel):
    """One state report from yazi, already converted to paths.

    - hover: `hovered` is the new cursor item (None in an empty directory)
    - cd: `directory` is the new current directory
    - yank: `selected` is what yazi reported when asked for its selection
    - chooser: `selected` is what yazi wrote to the chooser file on exit

    yank and chooser reports come from yazi itself and are taken as given.
    """

    kind: Literal['hover', 'cd', 'yank', 'chooser']
    hovered: Path | None = None
    directory: Path | None = None
    selected: tuple[Path, ...] = ()


class SelectionSnapshot(BaseStrictModel):
    """
    Authoritative view of the cursor and selection for one session.

    `explicit_items` holds what the user toggled; `selected_items` applies the
    default-to-hovered policy on top of it. Snapshots are replaced on every
    update, never mutated.
    """

    directory: Path
    hovered_item: Path | None = None
    explicit_items: tuple[Path, ...] = ()

    @property
    def selected_items(self) -> tuple[Path, ...]:
        """Explicit selection if any, otherwise the hovered item alone."""
        if self.explicit_items:
            return self.explicit_items
        if self.hovered_item is not None:
            return (self.hovered_item,)
        return ()


class CloseEvent(BaseStrictModel):
    """The final snapshot paired with the reason the session closed."""

    reason: CloseReason
    snapshot: SelectionSnapshot
