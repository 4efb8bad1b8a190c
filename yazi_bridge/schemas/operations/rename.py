"""
Bulk rename schemas.

The plan is a pure value: computing it never touches the filesystem.
"""

from __future__ import annotations

import enum
from pathlib import Path

import pydantic

from yazi_bridge.schemas.types import BaseStrictModel


class RenameState(enum.Enum):
    """Bulk rename transaction states."""

    IDLE = 'idle'
    EDITOR_OPEN = 'editor_open'
    CONFIRMING = 'confirming'
    APPLIED = 'applied'
    ABORTED = 'aborted'

    @property
    def is_terminal(self) -> bool:
        return self in (RenameState.APPLIED, RenameState.ABORTED)


class RenameChange(BaseStrictModel):
    """One positional difference between original and edited names."""

    index: int
    source: Path
    target: Path


class RenamePlan(BaseStrictModel):
    """Positional pairing of original and edited names within one directory."""

    directory: Path
    original_names: tuple[str, ...]
    edited_names: tuple[str, ...]

    @pydantic.model_validator(mode='after')
    def _check_shape(self) -> RenamePlan:
        if len(self.original_names) != len(self.edited_names):
            raise ValueError('original_names and edited_names must have the same length')
        if any(not name for name in self.edited_names):
            raise ValueError('edited names must not be empty')
        return self

    @property
    def changes(self) -> tuple[RenameChange, ...]:
        """Indices whose name changed, in index order."""
        return tuple(
            RenameChange(
                index=i,
                source=self.directory / original,
                target=self.directory / edited,
            )
            for i, (original, edited) in enumerate(zip(self.original_names, self.edited_names, strict=True))
            if original != edited
        )


class RenameResult(BaseStrictModel):
    """Outcome of a finished bulk rename transaction."""

    transaction_id: str
    state: RenameState
    renamed: tuple[RenameChange, ...] = ()
    buffers_updated: int = 0
