"""
Action dispatcher - turns a close event into exactly one editor action.

The mapping is an exhaustive `match` over CloseReason; adding a reason without
handling it here fails type checking through `assert_never`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import assert_never

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.domain.session import Session
from yazi_bridge.exceptions import NoSelection
from yazi_bridge.protocols import EditorProtocol, LoggerProtocol, NullLogger
from yazi_bridge.schemas.operations.actions import ActionResult, QuickfixEntry
from yazi_bridge.schemas.operations.rename import RenameResult
from yazi_bridge.schemas.operations.selection import CloseReason, SelectionSnapshot

__all__ = ['ActionDispatcher', 'RenameHandler']

logger = logging.getLogger(__name__)

type RenameHandler = Callable[[Session, SelectionSnapshot], Awaitable[RenameResult]]


class ActionDispatcher:
    """Performs the editor action for a close reason and the final snapshot."""

    def __init__(
        self,
        editor: EditorProtocol,
        settings: BridgeSettings,
        *,
        rename_handler: RenameHandler | None = None,
        logger: LoggerProtocol | None = None,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            editor: Host editor receiving the commands
            settings: Bridge settings (register, tab options, cwd behaviour)
            rename_handler: Runs a bulk rename transaction (normally ProcessBridge.start_rename)
            logger: Optional user-facing logger
        """
        self.editor = editor
        self.settings = settings
        self.rename_handler = rename_handler
        self.logger = logger or NullLogger()

    async def on_close(self, session: Session, reason: CloseReason, snapshot: SelectionSnapshot) -> ActionResult:
        """
        Perform the action for `reason`.

        Args:
            session: Session that closed (root path, working directory)
            reason: Why the session closed
            snapshot: Final selection snapshot

        Returns:
            What was done

        Raises:
            NoSelection: If nothing is selected and the reason is not CANCELLED
        """
        paths = snapshot.selected_items
        if reason is not CloseReason.CANCELLED and not paths:
            await self.logger.warning(f'Nothing selected, {reason.value} skipped')
            raise NoSelection(reason.value)

        logger.debug('Dispatching %s for %d path(s)', reason.value, len(paths))

        match reason:
            case CloseReason.OPEN:
                for path in paths:
                    await self.editor.open_buffer(path)
                result = ActionResult(reason=reason, paths=paths)

            case CloseReason.OPEN_VSPLIT | CloseReason.OPEN_HSPLIT:
                vertical = reason is CloseReason.OPEN_VSPLIT
                for path in paths:
                    await self.editor.open_split(path, vertical=vertical)
                result = ActionResult(reason=reason, paths=paths)

            case CloseReason.OPEN_TAB:
                # Read once, before the first tab exists, so every tab gets the calling window's values
                window_options = await self.editor.get_window_options(self.settings.TAB_WINDOW_OPTIONS)
                for path in paths:
                    await self.editor.open_tab(path, window_options)
                result = ActionResult(reason=reason, paths=paths, tabs_created=len(paths))

            case CloseReason.QUICKFIX_ALL:
                entries = tuple(QuickfixEntry(filename=str(path), text=path.name) for path in paths)
                await self.editor.set_reference_list(entries)
                result = ActionResult(reason=reason, paths=paths, quickfix_entries=entries)

            case CloseReason.YANK_PATHS:
                text = session.resolver.relative_many(paths)
                register = self.settings.CLIPBOARD_REGISTER
                await self.editor.write_register(register, text)
                await self.logger.info(f'Copied {len(paths)} relative path(s) to register {register}')
                result = ActionResult(reason=reason, paths=paths, register=register, register_text=text)

            case CloseReason.CANCELLED:
                return ActionResult(reason=reason)

            case CloseReason.RENAME_REQUESTED:
                if self.rename_handler is None:
                    raise RuntimeError('RENAME_REQUESTED dispatched without a rename handler')
                rename = await self.rename_handler(session, snapshot)
                return ActionResult(reason=reason, paths=paths, rename=rename)

            case _:
                assert_never(reason)

        if self.settings.CHANGE_CWD_ON_CLOSE:
            await self.editor.set_cwd(session.working_directory)
            result = result.model_copy(update={'cwd_changed_to': session.working_directory})

        return result
