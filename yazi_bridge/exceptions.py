"""
Shared exceptions for yazi-bridge.

Domain-specific exceptions used across services.

Exception Hierarchy:
    YaziBridgeError (base)
    ├── LaunchError (file manager or subscriber failed to start)
    ├── ProcessExited (file manager terminated unexpectedly)
    ├── NoSelection (action requested with nothing selected)
    ├── EditorError (remote editor command failed)
    └── RenameError (bulk rename workflow failures)
        ├── RenameInProgress (second transaction for the same session)
        ├── RenameLineCountMismatch (lines added or removed while editing)
        ├── InvalidRenamePlan (empty or path-like edited names)
        └── RenameApplyFailure (filesystem rename failed part way)
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class YaziBridgeError(Exception):
    """Base exception for all yazi-bridge errors."""


class LaunchError(YaziBridgeError):
    """Raised when the file manager process (or its event subscriber) cannot be started."""

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = list(command)
        self.reason = reason
        super().__init__(f'Failed to launch {self.command[0] if self.command else "<empty command>"}: {reason}')


class ProcessExited(YaziBridgeError):
    """Raised to a pending close wait when the file manager exits unexpectedly."""

    def __init__(self, session_id: str, returncode: int | None) -> None:
        self.session_id = session_id
        self.returncode = returncode
        super().__init__(f'yazi exited unexpectedly (session {session_id}, exit code {returncode})')


class NoSelection(YaziBridgeError):
    """Raised when an action other than cancel is requested with an empty selection."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f'Nothing selected for {reason}')


class EditorError(YaziBridgeError):
    """Raised when the host editor cannot be reached or rejects a command."""

    def __init__(self, expr: str, reason: str) -> None:
        self.expr = expr
        self.reason = reason
        super().__init__(f'Editor command failed: {reason}')


class RenameError(YaziBridgeError):
    """Base exception for bulk rename failures."""


class RenameInProgress(RenameError):
    """Raised when a session already has a rename transaction that is not finished."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f'A bulk rename is already in progress for session {session_id}')


class RenameLineCountMismatch(RenameError):
    """Raised when the edited name list does not have one line per original name.

    Recoverable: the user is sent back to the editor.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'Expected {expected} line(s) but found {actual}. '
            f'Keep exactly one name per line and do not add or remove lines.'
        )


class InvalidRenamePlan(RenameError):
    """Raised when an edited name cannot be used as a file name."""

    def __init__(self, index: int, name: str, reason: str) -> None:
        self.index = index
        self.name = name
        super().__init__(f'Line {index + 1} ({name!r}): {reason}')


class RenameApplyFailure(RenameError):
    """Raised when a rename fails part way through a plan.

    Renames before ``index`` have been applied and are NOT rolled back;
    renames after it were not attempted. Items that were moved to a temporary
    name for a swap are moved back, or named in ``cause`` if they could not be.
    """

    def __init__(self, index: int, source: Path, target: Path, applied: Sequence[int], cause: str) -> None:
        self.index = index
        self.source = source
        self.target = target
        self.applied = list(applied)
        self.cause = cause
        applied_str = ', '.join(str(i + 1) for i in self.applied) or 'none'
        super().__init__(
            f'Rename {index + 1} failed ({source.name} -> {target.name}): {cause}. '
            f'Already applied line(s): {applied_str}. Remaining renames were not attempted.'
        )
