"""
Action result schemas.

Returned by the action dispatcher so callers (CLI, tests) can report what
happened in the editor.
"""

from __future__ import annotations

from pathlib import Path

from yazi_bridge.schemas.operations.rename import RenameResult
from yazi_bridge.schemas.operations.selection import CloseReason
from yazi_bridge.schemas.types import BaseStrictModel, PathStr


class QuickfixEntry(BaseStrictModel):
    """One reference-list entry. Mirrors the keys of Vim's setqflist() items."""

    filename: PathStr
    lnum: int = 1
    col: int = 1
    text: str = ''


class ActionResult(BaseStrictModel):
    """Execution result of a single close action."""

    reason: CloseReason
    paths: tuple[Path, ...] = ()  # Paths the action was applied to, in selection order

    tabs_created: int = 0
    quickfix_entries: tuple[QuickfixEntry, ...] = ()
    register: str | None = None
    register_text: str | None = None
    cwd_changed_to: Path | None = None

    rename: RenameResult | None = None
