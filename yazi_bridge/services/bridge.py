"""
Process bridge - runs yazi on a terminal surface and streams its state.

Each session owns two processes:

- yazi itself, on a pty, started with `--chooser-file` (it writes the chosen
  paths there and exits) and `--client-id` (so the event stream can find it)
- `ya sub <kinds>`, which prints yazi's events, one per line, to a pipe

Close keys (split, tab, quickfix, yank) are intercepted before they reach
yazi: the bridge records the reason, then forwards the choose key so yazi
itself writes its selection (or the hovered item) to the chooser file and
quits. The chooser file is the final state report for the session.

The rename key keeps yazi running: the bridge asks yazi for its selection
through `ya emit-to <id> yank` and queues a rename request instead.

Lifecycle:
    open() -> [handle_event_line() ...] -> wait_for_close() -> CloseEvent
    close() at any point discards whatever has not been consumed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import shutil
import tempfile
import uuid
from collections.abc import Sequence
from pathlib import Path

import pydantic

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.domain.session import Session
from yazi_bridge.exceptions import EditorError, LaunchError, ProcessExited, RenameInProgress
from yazi_bridge.paths import PathResolver
from yazi_bridge.protocols import EditorProtocol, LoggerProtocol, NullLogger
from yazi_bridge.schemas.events import YankBody, YaziEvent, parse_event_line
from yazi_bridge.schemas.operations.rename import RenameResult
from yazi_bridge.schemas.operations.selection import CloseEvent, CloseReason, RawState, SelectionSnapshot
from yazi_bridge.services.buffer_sync import BufferSync
from yazi_bridge.services.rename import BulkRenameTransaction
from yazi_bridge.services.selection import SelectionTracker
from yazi_bridge.services.terminal import OutputCallback, TerminalSurface

__all__ = ['ProcessBridge']

logger = logging.getLogger(__name__)


class ProcessBridge:
    """Spawns yazi sessions, forwards keys and turns process exit into close events."""

    def __init__(
        self,
        editor: EditorProtocol,
        settings: BridgeSettings,
        *,
        tracker: SelectionTracker | None = None,
        buffer_sync: BufferSync | None = None,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self.editor = editor
        self.settings = settings
        self.tracker = tracker or SelectionTracker()
        self.buffer_sync = buffer_sync or BufferSync(editor)
        self.logger = logger or NullLogger()

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def open(
        self,
        session_root: Path | str,
        region_id: str,
        *,
        extra_paths: Sequence[Path] = (),
        output: OutputCallback | None = None,
        size: tuple[int, int] = (24, 80),
    ) -> Session:
        """
        Start yazi on `session_root` and begin streaming its events.

        Args:
            session_root: File or directory yazi starts on (a file is hovered in its directory)
            region_id: Editor tab/window the session belongs to
            extra_paths: Further paths, each opened as its own yazi tab
            output: Receives yazi's screen output
            size: Terminal (rows, cols)

        Returns:
            Open session

        Raises:
            LaunchError: If the root does not exist or a binary cannot be started;
                no session is created
        """
        root = Path(session_root).expanduser().absolute()
        yazi_binary = shutil.which(self.settings.YAZI_BINARY)
        ya_binary = shutil.which(self.settings.YA_BINARY)

        if not root.exists():
            raise LaunchError([self.settings.YAZI_BINARY], f'root path does not exist: {root}')
        if yazi_binary is None:
            raise LaunchError([self.settings.YAZI_BINARY], 'not found in PATH')
        if ya_binary is None:
            raise LaunchError([self.settings.YA_BINARY], 'not found in PATH')

        session_id = str(uuid.uuid4().int >> 80)  # yazi client ids are unsigned integers
        resolver = PathResolver(root)
        chooser_file = Path(tempfile.gettempdir()) / f'yazi-bridge-{session_id}.chooser'
        chooser_file.unlink(missing_ok=True)

        command = [
            yazi_binary,
            str(root),
            *(str(p) for p in extra_paths),
            f'--chooser-file={chooser_file}',
            f'--client-id={session_id}',
        ]
        terminal = await TerminalSurface.spawn(command, cwd=resolver.base, size=size, on_output=output)

        try:
            events = await asyncio.create_subprocess_exec(
                ya_binary,
                'sub',
                ','.join(self.settings.EVENT_KINDS),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                env={**os.environ, 'YAZI_ID': session_id},
            )
        except OSError as e:
            await terminal.terminate(self.settings.TERMINATE_TIMEOUT_SECONDS)
            raise LaunchError([ya_binary, 'sub'], str(e)) from e

        session = Session(
            id=session_id,
            region_id=region_id,
            root_path=root,
            resolver=resolver,
            working_directory=resolver.base,
            chooser_file=chooser_file,
            terminal=terminal,
            output=output,
            size=size,
            events=events,
        )
        session.event_pump = asyncio.create_task(self._pump_events(session))

        logger.info('Opened session %s for region %s at %s', session_id, region_id, root)
        return session

    async def close(self, session: Session) -> None:
        """
        Terminate yazi and release the terminal. Idempotent.

        Any snapshot not yet consumed by a close wait is discarded.
        """
        if not session.is_open and session.terminal.returncode is not None:
            await self._stop_events(session)
            return

        session.is_open = False
        session.snapshot = None
        session.pending_reason = None

        if session.rename is not None:
            await session.rename.abort()
        await session.terminal.terminate(self.settings.TERMINATE_TIMEOUT_SECONDS)
        await self._stop_events(session)
        session.chooser_file.unlink(missing_ok=True)
        logger.info('Closed session %s', session.id)

    async def wait_for_close(self, session: Session) -> CloseEvent:
        """
        Wait for the user to leave yazi (or to request a bulk rename).

        Returns:
            CloseEvent with the final snapshot. RENAME_REQUESTED leaves the
            session open; every other reason means yazi has exited.

        Raises:
            ProcessExited: If yazi exited with an error or was killed
        """
        exit_wait = asyncio.ensure_future(session.terminal.wait())
        request_wait = asyncio.ensure_future(session.requests.get())
        try:
            done, _ = await asyncio.wait({exit_wait, request_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (exit_wait, request_wait):
                if not task.done():
                    task.cancel()

        if request_wait in done:
            return CloseEvent(reason=request_wait.result(), snapshot=session.current_snapshot())

        return await self._on_exit(session, exit_wait.result())

    # ==========================================================================
    # Input
    # ==========================================================================

    async def send_keys(self, session: Session, keys: bytes) -> None:
        """
        Forward user input to yazi, unless it is a close key.

        While a bulk rename is in progress the input belongs to the rename
        transaction and close keys are ignored.
        """
        if not session.is_open or session.terminal.returncode is not None:
            logger.debug('Ignoring input for closed session %s', session.id)
            return

        if session.rename_in_progress:
            assert session.rename is not None
            session.rename.feed_keys(keys)
            return

        reason = self.settings.key_bytes.get(keys)
        if reason is None:
            session.terminal.write(keys)
            return

        if reason is CloseReason.RENAME_REQUESTED:
            if session.selection_request is not None:
                logger.debug('Session %s is already collecting a rename selection', session.id)
                return
            await self.request_selection(session)
            await session.requests.put(reason)
            return

        if session.pending_reason is not None:
            logger.debug('Session %s already closing with %s', session.id, session.pending_reason.value)
            return

        logger.debug('Close key for %s in session %s', reason.value, session.id)
        session.pending_reason = reason
        session.terminal.write(self.settings.choose_key_bytes)

    def resize(self, session: Session, rows: int, cols: int) -> None:
        session.size = (rows, cols)
        session.terminal.resize(rows, cols)
        if session.rename_in_progress:
            assert session.rename is not None
            session.rename.resize(rows, cols)

    async def request_selection(self, session: Session) -> SelectionSnapshot:
        """
        Ask the running yazi for its selection and apply the answer.

        Selection changes are not on yazi's event stream. yazi's `yank` command
        publishes an `@yank` report listing the selected items in yazi's order,
        or the hovered item when nothing is selected; the yank is undone right
        after. Without an answer within SELECTION_TIMEOUT_SECONDS the tracked
        snapshot is kept.

        Returns:
            The session's snapshot after the report
        """
        request: asyncio.Future[RawState] = asyncio.get_running_loop().create_future()
        session.selection_request = request
        raw_state: RawState | None = None
        try:
            if not await self.emit(session, 'yank'):
                return session.current_snapshot()
            try:
                raw_state = await asyncio.wait_for(request, timeout=self.settings.SELECTION_TIMEOUT_SECONDS)
            except TimeoutError:
                logger.warning('No selection report from session %s, using the tracked snapshot', session.id)
        finally:
            session.selection_request = None

        await self.emit(session, 'unyank')
        if raw_state is None:
            return session.current_snapshot()
        return self.tracker.on_update(session, raw_state)

    async def emit(self, session: Session, *command: str) -> bool:
        """
        Run a yazi command inside the session's yazi (`ya emit-to <id> ...`).

        Returns:
            True if `ya` accepted the command
        """
        argv = [self.settings.YA_BINARY, 'emit-to', session.id, *command]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning('Could not run %s: %s', shlex.join(argv), e)
            return False

        _, stderr = await process.communicate()
        if process.returncode != 0:
            logger.warning('%s failed: %s', shlex.join(argv), stderr.decode(errors='replace').strip())
            return False
        return True

    # ==========================================================================
    # Events
    # ==========================================================================

    async def handle_event_line(self, session: Session, line: str) -> YaziEvent | None:
        """
        Apply one event line to the session.

        hover/cd update the selection snapshot (cd also moves the working
        directory); an `@yank` report answers a pending selection request; file
        operations are mirrored into editor buffers. An editor that cannot be
        reached is logged and the event skipped.

        Returns:
            The parsed event, or None if the line was ignored
        """
        if not session.is_open:
            return None

        try:
            event = parse_event_line(line)
        except (ValueError, pydantic.ValidationError) as e:
            logger.warning('Skipping malformed event from session %s: %s', session.id, e)
            return None

        if event is None:
            return None

        raw_state = self.tracker.raw_state_from_event(event)
        if isinstance(event.body, YankBody):
            request = session.selection_request
            if request is None or request.done() or event.sender != session.id:
                logger.debug('Ignoring yank report from %s for session %s', event.sender, session.id)
                return None
            assert raw_state is not None
            request.set_result(raw_state)
        elif raw_state is not None:
            if raw_state.kind == 'cd' and raw_state.directory is not None:
                session.working_directory = raw_state.directory
            self.tracker.on_update(session, raw_state)
        else:
            try:
                await self.buffer_sync.handle(event)
            except EditorError as e:
                logger.warning('Could not apply %s event to editor buffers: %s', event.kind, e)

        return event

    async def _pump_events(self, session: Session) -> None:
        assert session.events is not None and session.events.stdout is not None
        async for raw_line in session.events.stdout:
            await self.handle_event_line(session, raw_line.decode(errors='replace'))
        logger.debug('Event stream for session %s ended', session.id)

    async def _stop_events(self, session: Session) -> None:
        """Stop `ya sub`; lines it already wrote are still handled before the pump ends."""
        if session.events is not None and session.events.returncode is None:
            try:
                session.events.terminate()
            except ProcessLookupError:
                pass
            await session.events.wait()

        pump = session.event_pump
        if pump is None:
            return
        if not pump.done():
            await asyncio.wait({pump}, timeout=self.settings.TERMINATE_TIMEOUT_SECONDS)
        if not pump.done():
            pump.cancel()
        try:
            await pump
        except asyncio.CancelledError:
            pass

    # ==========================================================================
    # Exit handling
    # ==========================================================================

    async def _on_exit(self, session: Session, returncode: int) -> CloseEvent:
        was_open = session.is_open
        pending = session.pending_reason

        # Drained while still open so the last hover/cd events count
        await self._stop_events(session)
        session.is_open = False
        session.pending_reason = None
        session.terminal.close()

        chooser_content = ''
        if session.chooser_file.exists():
            chooser_content = session.chooser_file.read_text(encoding='utf-8')
            session.chooser_file.unlink()

        if not was_open:
            # Closed by the host: nothing may fire
            return CloseEvent(
                reason=CloseReason.CANCELLED, snapshot=SelectionSnapshot(directory=session.working_directory)
            )

        if returncode != 0:
            session.snapshot = None
            await self.logger.error(f'yazi exited with code {returncode}')
            raise ProcessExited(session.id, returncode)

        raw_state = self.tracker.raw_state_from_chooser(chooser_content)
        if raw_state is not None:
            snapshot = self.tracker.on_update(session, raw_state)
            return CloseEvent(reason=pending or CloseReason.OPEN, snapshot=snapshot)

        if pending is not None:
            return CloseEvent(reason=pending, snapshot=session.current_snapshot())

        session.snapshot = None
        return CloseEvent(reason=CloseReason.CANCELLED, snapshot=SelectionSnapshot(directory=session.working_directory))

    # ==========================================================================
    # Bulk rename
    # ==========================================================================

    async def start_rename(self, session: Session, snapshot: SelectionSnapshot) -> RenameResult:
        """
        Run a bulk rename transaction for the selected items.

        yazi keeps running underneath; its screen output is held back while the
        nested editor owns the terminal and it is redrawn afterwards.

        Raises:
            RenameInProgress: If the session already has an unfinished transaction
        """
        if session.rename_in_progress:
            raise RenameInProgress(session.id)

        transaction = BulkRenameTransaction(
            snapshot.selected_items,
            editor=self.editor,
            settings=self.settings,
            output=session.output,
            size=session.size,
            logger=self.logger,
        )
        session.rename = transaction
        session.terminal.set_output(None)
        try:
            await transaction.start()
            return await transaction.wait()
        finally:
            if session.is_open:
                session.terminal.set_output(session.output)
                self._redraw(session)

    def _redraw(self, session: Session) -> None:
        # A size change makes yazi repaint the whole screen
        rows, cols = session.size
        session.terminal.resize(rows, max(cols - 1, 1))
        session.terminal.resize(rows, cols)
