"""
Operation schemas for service results.

This package contains Pydantic models exchanged between services.
"""

from __future__ import annotations

from yazi_bridge.schemas.operations.actions import ActionResult, QuickfixEntry
from yazi_bridge.schemas.operations.rename import RenameChange, RenamePlan, RenameResult, RenameState
from yazi_bridge.schemas.operations.selection import CloseEvent, CloseReason, RawState, SelectionSnapshot

__all__ = [
    # Actions
    'ActionResult',
    'QuickfixEntry',
    # Rename
    'RenameChange',
    'RenamePlan',
    'RenameResult',
    'RenameState',
    # Selection
    'CloseEvent',
    'CloseReason',
    'RawState',
    'SelectionSnapshot',
]
