"""
Bridge configuration.

Extends base configuration with file manager, editor and keymap settings.
Settings come from `YAZI_BRIDGE_*` environment variables (or a .env file) and
are never written back.
"""

from __future__ import annotations

import os

import pydantic

from yazi_bridge.config.base import BaseBridgeSettings, lazy_settings
from yazi_bridge.keys import parse_key
from yazi_bridge.schemas.operations.selection import CloseReason

DEFAULT_KEYMAPS: dict[str, CloseReason] = {
    '<c-v>': CloseReason.OPEN_VSPLIT,
    '<c-x>': CloseReason.OPEN_HSPLIT,
    '<c-t>': CloseReason.OPEN_TAB,
    '<c-q>': CloseReason.QUICKFIX_ALL,
    '<c-y>': CloseReason.YANK_PATHS,
    '<c-r>': CloseReason.RENAME_REQUESTED,
}

DEFAULT_EVENT_KINDS = ('hover', 'cd', '@yank', 'rename', 'move', 'bulk', 'delete', 'trash')


class BridgeSettings(BaseBridgeSettings):
    """File manager, nested editor and keymap configuration."""

    # External programs
    YAZI_BINARY: str = 'yazi'
    YA_BINARY: str = 'ya'
    NVIM_BINARY: str = 'nvim'
    RENAME_EDITOR: str | None = None  # Falls back to $EDITOR, then NVIM_BINARY
    MIN_YAZI_VERSION: str = '0.4.0'

    # Behaviour
    OPEN_MULTIPLE_TABS: bool = False  # Pass every open buffer to yazi as its own tab
    CHANGE_CWD_ON_CLOSE: bool = False
    CLIPBOARD_REGISTER: str = '*'
    EVENT_KINDS: tuple[str, ...] = DEFAULT_EVENT_KINDS

    # Window-local options copied from the calling window into tabs opened by OPEN_TAB
    TAB_WINDOW_OPTIONS: tuple[str, ...] = ('number', 'relativenumber')

    # Keys intercepted by the bridge, in editor notation
    KEYMAPS: dict[str, CloseReason] = pydantic.Field(default_factory=lambda: dict(DEFAULT_KEYMAPS))
    CHOOSE_KEY: str = '<enter>'  # Forwarded to yazi to make it write the chooser file

    # Seconds to wait for yazi to report its selection when a rename is requested
    SELECTION_TIMEOUT_SECONDS: float = 2.0

    # Process shutdown
    TERMINATE_TIMEOUT_SECONDS: float = 3.0

    @pydantic.field_validator('KEYMAPS')
    @classmethod
    def validate_keymaps(cls, v: dict[str, CloseReason]) -> dict[str, CloseReason]:
        """Every key must parse, and no two notations may produce the same bytes."""
        seen: dict[bytes, str] = {}
        for notation, reason in v.items():
            raw = parse_key(notation)
            if raw in seen:
                raise ValueError(f'Keymaps {seen[raw]!r} and {notation!r} are the same key')
            if reason is CloseReason.OPEN:
                raise ValueError(f'{notation!r}: OPEN is triggered by CHOOSE_KEY, not a keymap')
            seen[raw] = notation
        return v

    @pydantic.field_validator('CHOOSE_KEY')
    @classmethod
    def validate_choose_key(cls, v: str) -> str:
        parse_key(v)
        return v

    @pydantic.field_validator('CLIPBOARD_REGISTER')
    @classmethod
    def validate_register(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError('CLIPBOARD_REGISTER must be a single register name')
        return v

    @property
    def key_bytes(self) -> dict[bytes, CloseReason]:
        """KEYMAPS keyed by the raw bytes the terminal sends."""
        return {parse_key(notation): reason for notation, reason in self.KEYMAPS.items()}

    @property
    def choose_key_bytes(self) -> bytes:
        return parse_key(self.CHOOSE_KEY)

    def rename_editor_command(self) -> str:
        """Command line used to start the nested rename editor."""
        return self.RENAME_EDITOR or os.environ.get('EDITOR', '').strip() or self.NVIM_BINARY


# Module-level singleton (lazy-loaded)
settings = lazy_settings(BridgeSettings)
