"""
Bulk rename transaction - edit a list of names in a nested editor and apply the diff.

State machine:

    Idle -> EditorOpen -> Confirming -> Applied | Aborted
               ^              |
               +--------------+  (line count changed: back to the editor)

Planning (`plan_renames`) is a pure function over two name sequences; only
`apply_plan` touches the filesystem. Applied renames are never rolled back: if
rename N fails, renames before N stay applied, later ones are not attempted,
and the failure says exactly which line failed.

Collision policy: a target name that already exists on disk and is not itself
renamed by the plan, or two lines with the same target, aborts the whole plan
before any rename happens. Swaps and chains (`a -> b, b -> a`) are applied by
moving the taken items to temporary names first.
"""

from __future__ import annotations

import asyncio
import errno
import itertools
import logging
import os
import shlex
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.exceptions import (
    EditorError,
    InvalidRenamePlan,
    RenameApplyFailure,
    RenameError,
    RenameLineCountMismatch,
)
from yazi_bridge.protocols import EditorProtocol, LoggerProtocol, NullLogger
from yazi_bridge.schemas.operations.rename import RenameChange, RenamePlan, RenameResult, RenameState
from yazi_bridge.services.terminal import OutputCallback, TerminalSurface

__all__ = [
    'BulkRenameTransaction',
    'CONFIRM_PROMPT',
    'apply_plan',
    'check_collisions',
    'plan_renames',
    'read_edited_names',
]

logger = logging.getLogger(__name__)

CONFIRM_PROMPT = 'Continue to rename? (y/N): '

type Confirm = Callable[[RenamePlan], Awaitable[bool]]

_transaction_ids = itertools.count(1)


# ==============================================================================
# Pure planning
# ==============================================================================


def plan_renames(directory: Path, original_names: Sequence[str], edited_names: Sequence[str]) -> RenamePlan:
    """
    Pair original and edited names positionally.

    Args:
        directory: Directory containing every original name
        original_names: Base names before editing, in selection order
        edited_names: Lines of the saved rename buffer

    Returns:
        Validated plan (its `changes` may be empty)

    Raises:
        RenameLineCountMismatch: If lines were added or removed
        InvalidRenamePlan: If an edited line is empty or not a plain file name
    """
    if len(edited_names) != len(original_names):
        raise RenameLineCountMismatch(expected=len(original_names), actual=len(edited_names))

    for index, name in enumerate(edited_names):
        if not name.strip():
            raise InvalidRenamePlan(index, name, 'name is empty')
        if '/' in name or name in ('.', '..') or '\0' in name:
            raise InvalidRenamePlan(index, name, 'must be a plain file name')

    return RenamePlan(
        directory=directory,
        original_names=tuple(original_names),
        edited_names=tuple(edited_names),
    )


def read_edited_names(path: Path) -> list[str]:
    """Lines of the rename buffer; a trailing newline does not add a line."""
    return path.read_text(encoding='utf-8').splitlines()


def check_collisions(plan: RenamePlan) -> None:
    """
    Reject a plan whose targets clash, before any rename runs.

    A target may be the current name of another item in the plan (swaps and
    chains); those are moved aside by `apply_plan`.

    Raises:
        RenameApplyFailure: With `applied=[]`, at the first clashing index
    """
    sources = {change.source for change in plan.changes}
    claimed: set[Path] = set()
    for change in plan.changes:
        if change.target in claimed:
            raise RenameApplyFailure(change.index, change.source, change.target, [], 'another line has the same name')
        if change.target.exists() and change.target not in sources:
            raise RenameApplyFailure(change.index, change.source, change.target, [], 'target already exists')
        claimed.add(change.target)


def apply_plan(plan: RenamePlan) -> list[RenameChange]:
    """
    Rename files in index order.

    Items whose current name is the target of another line are first moved to
    a temporary name in the same directory, so `a -> b, b -> a` works.

    Returns:
        Changes that were applied (all of them on success)

    Raises:
        RenameApplyFailure: At the first failing rename; earlier renames stay applied
    """
    staged = _stage_taken_sources(plan)
    applied: list[RenameChange] = []
    for change in plan.changes:
        current = staged.get(change.index, change.source)
        try:
            # Path.rename silently replaces an existing file on POSIX
            if change.target.exists():
                raise FileExistsError(errno.EEXIST, 'target already exists')
            current.rename(change.target)
        except OSError as e:
            stuck = _unstage(staged, plan)
            raise RenameApplyFailure(
                change.index,
                change.source,
                change.target,
                [c.index for c in applied],
                (e.strerror or str(e)) + _left_over(stuck),
            ) from e
        staged.pop(change.index, None)
        logger.info('Renamed %s -> %s', change.source, change.target)
        applied.append(change)
    return applied


def _stage_taken_sources(plan: RenamePlan) -> dict[int, Path]:
    """Move every source that another line renames onto out of the way."""
    targets = {change.target for change in plan.changes}
    staged: dict[int, Path] = {}
    for change in plan.changes:
        if change.source not in targets:
            continue
        temporary = change.source.with_name(f'.{change.source.name}.yazi-bridge-{os.getpid()}-{change.index}')
        try:
            change.source.rename(temporary)
        except OSError as e:
            raise RenameApplyFailure(
                change.index,
                change.source,
                change.target,
                [],
                (e.strerror or str(e)) + _left_over(_unstage(staged, plan)),
            ) from e
        logger.debug('Moved %s aside to %s', change.source, temporary)
        staged[change.index] = temporary
    return staged


def _unstage(staged: dict[int, Path], plan: RenamePlan) -> list[Path]:
    """Move staged items back to their original names; returns those that could not be."""
    sources = {change.index: change.source for change in plan.changes}
    stuck: list[Path] = []
    for index, temporary in staged.items():
        original = sources[index]
        if original.exists():
            stuck.append(temporary)
            continue
        try:
            temporary.rename(original)
        except OSError:
            logger.warning('Could not move %s back to %s', temporary, original)
            stuck.append(temporary)
    return stuck


def _left_over(stuck: Sequence[Path]) -> str:
    if not stuck:
        return ''
    return '. Left under temporary name(s): ' + ', '.join(path.name for path in stuck)


# ==============================================================================
# Transaction
# ==============================================================================


class BulkRenameTransaction:
    """
    One bulk rename for one session.

    Key input reaches the transaction through `feed_keys()`: while the nested
    editor is open it is forwarded to the editor's terminal, while confirming
    it is read as the answer to the prompt.
    """

    def __init__(
        self,
        items: Sequence[Path],
        *,
        editor: EditorProtocol,
        settings: BridgeSettings,
        output: OutputCallback | None = None,
        size: tuple[int, int] = (24, 80),
        confirm: Confirm | None = None,
        logger: LoggerProtocol | None = None,
    ) -> None:
        """
        Initialize a rename transaction.

        Args:
            items: Paths to rename, in selection order, all in one directory
            editor: Host editor, for renaming buffers after the files move
            settings: Bridge settings (nested editor command)
            output: Receives everything shown to the user (editor screen, prompt)
            size: Terminal size for the nested editor
            confirm: Replaces the interactive y/N prompt when given
            logger: Optional user-facing logger

        Raises:
            InvalidRenamePlan: If items are empty or span several directories
        """
        if not items:
            raise InvalidRenamePlan(0, '', 'nothing to rename')
        directory = items[0].parent
        for index, item in enumerate(items):
            if item.parent != directory:
                raise InvalidRenamePlan(index, item.name, f'not in {directory}')

        self.transaction_id = str(next(_transaction_ids))
        self.items = list(items)
        self.directory = directory
        self.original_names = [item.name for item in items]
        self.editor = editor
        self.settings = settings
        self.output = output
        self.size = size
        self.confirm = confirm
        self.logger = logger or NullLogger()

        self.state = RenameState.IDLE
        self.scratch_file = Path(tempfile.gettempdir()) / f'yazi-{os.getpid()}' / f'bulk-{self.transaction_id}'
        self._surface: TerminalSurface | None = None
        self._answer: asyncio.Future[str] | None = None
        self._typed = ''
        self._task: asyncio.Task[RenameResult] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Idle -> EditorOpen: write the names and open the nested editor."""
        if self.state is not RenameState.IDLE:
            raise RenameError(f'Rename transaction {self.transaction_id} already started')

        self.scratch_file.parent.mkdir(parents=True, exist_ok=True)
        self.scratch_file.write_text(''.join(f'{name}\n' for name in self.original_names), encoding='utf-8')
        await self.logger.info(f'Renaming {len(self.items)} item(s) in {self.directory}')

        await self._open_editor()
        self._task = asyncio.create_task(self._run())

    async def wait(self) -> RenameResult:
        """Wait for Applied or Aborted. Re-raises RenameApplyFailure."""
        if self._task is None:
            raise RenameError(f'Rename transaction {self.transaction_id} was not started')
        return await self._task

    async def abort(self) -> None:
        """Abandon the transaction from any non-terminal state without renaming anything."""
        if self.state.is_terminal:
            return
        if self._surface is not None:
            await self._surface.terminate(self.settings.TERMINATE_TIMEOUT_SECONDS)
        if self._answer is not None and not self._answer.done():
            self._answer.set_result('')
        if self._task is None:
            self.state = RenameState.ABORTED
            self._cleanup()

    def feed_keys(self, data: bytes) -> None:
        """Route user input to the nested editor or the confirmation prompt."""
        match self.state:
            case RenameState.EDITOR_OPEN if self._surface is not None:
                self._surface.write(data)
            case RenameState.CONFIRMING:
                self._read_answer(data)
            case _:
                logger.debug('Ignoring %d byte(s) in rename state %s', len(data), self.state.value)

    def resize(self, rows: int, cols: int) -> None:
        self.size = (rows, cols)
        if self._surface is not None:
            self._surface.resize(rows, cols)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _open_editor(self) -> None:
        command = [*shlex.split(self.settings.rename_editor_command()), str(self.scratch_file)]
        self._surface = await TerminalSurface.spawn(
            command,
            cwd=self.directory,
            size=self.size,
            on_output=self.output,
        )
        self.state = RenameState.EDITOR_OPEN

    async def _run(self) -> RenameResult:
        try:
            plan = await self._edit_until_valid()
            if plan is None:
                self.state = RenameState.ABORTED
                return RenameResult(transaction_id=self.transaction_id, state=self.state)

            self.state = RenameState.CONFIRMING
            if not plan.changes:
                self.state = RenameState.APPLIED
                await self.logger.info('No names changed')
                return RenameResult(transaction_id=self.transaction_id, state=self.state)

            if not await self._confirmed(plan):
                self.state = RenameState.ABORTED
                await self.logger.info('Rename cancelled')
                return RenameResult(transaction_id=self.transaction_id, state=self.state)

            return await self._apply(plan)
        finally:
            self._cleanup()

    async def _edit_until_valid(self) -> RenamePlan | None:
        """Wait for the editor to exit; reopen it while the saved names are invalid."""
        while True:
            assert self._surface is not None
            returncode = await self._surface.wait()
            self._surface.close()
            self._surface = None

            if self.state is RenameState.ABORTED or returncode != 0:
                logger.debug('Nested editor exited with %s, aborting rename', returncode)
                return None

            try:
                return plan_renames(self.directory, self.original_names, read_edited_names(self.scratch_file))
            except (RenameLineCountMismatch, InvalidRenamePlan) as e:
                await self.logger.error(str(e))
                self._show(f'\r\n{e}\r\n')
                await self._open_editor()

    async def _confirmed(self, plan: RenamePlan) -> bool:
        if self.confirm is not None:
            return await self.confirm(plan)

        lines = [f'{c.source.name} -> {c.target.name}' for c in plan.changes]
        self._show('\r\n' + '\r\n'.join(lines) + '\r\n\r\n' + CONFIRM_PROMPT)
        self._answer = asyncio.get_running_loop().create_future()
        answer = await self._answer
        return answer.strip().lower() in ('y', 'yes')

    async def _apply(self, plan: RenamePlan) -> RenameResult:
        try:
            check_collisions(plan)
            applied = apply_plan(plan)
        except RenameApplyFailure as e:
            self.state = RenameState.ABORTED
            applied_changes = [c for c in plan.changes if c.index in e.applied]
            await self._rename_buffers(applied_changes)
            await self.logger.error(str(e))
            raise

        self.state = RenameState.APPLIED
        buffers_updated = await self._rename_buffers(applied)
        await self.logger.info(f'Renamed {len(applied)} item(s)')
        return RenameResult(
            transaction_id=self.transaction_id,
            state=self.state,
            renamed=tuple(applied),
            buffers_updated=buffers_updated,
        )

    async def _rename_buffers(self, changes: Sequence[RenameChange]) -> int:
        """Point open buffers at their renamed files; returns how many moved."""
        try:
            open_paths = set(await self.editor.list_buffer_paths())
            moves = {change.source: change.target for change in changes if change.source in open_paths}
            # A buffer cannot take a name another buffer still has
            taken = set(moves.values())
            current: dict[Path, Path] = {}
            for source in moves:
                current[source] = source
                if source in taken:
                    aside = source.with_name(f'.{source.name}.yazi-bridge-buffer')
                    if await self.editor.rename_buffer_path(source, aside):
                        current[source] = aside
            count = 0
            for source, target in moves.items():
                if await self.editor.rename_buffer_path(current[source], target):
                    count += 1
            return count
        except EditorError as e:
            await self.logger.warning(f'Files were renamed but buffers could not follow: {e.reason}')
            return 0

    def _read_answer(self, data: bytes) -> None:
        if self._answer is None or self._answer.done():
            return
        for char in data.decode(errors='ignore'):
            if char in '\r\n':
                self._show('\r\n')
                self._answer.set_result(self._typed)
                return
            if char in ('\x03', '\x1b'):  # Ctrl-C / Esc
                self._show('\r\n')
                self._answer.set_result('')
                return
            if char in ('\x7f', '\b'):
                if self._typed:
                    self._typed = self._typed[:-1]
                    self._show('\b \b')
                continue
            if char.isprintable():
                self._typed += char
                self._show(char)

    def _show(self, text: str) -> None:
        if self.output is not None:
            self.output(text.encode())

    def _cleanup(self) -> None:
        self.scratch_file.unlink(missing_ok=True)
        try:
            self.scratch_file.parent.rmdir()
        except OSError:
            pass  # Other transactions of this process still use it
