"""
Key notation used in keymap settings.

Keymaps are written the way editor users write them (`<c-v>`, `<enter>`,
`q`) and converted to the raw bytes a terminal sends for that key.
"""

from __future__ import annotations

from typing import Final

__all__ = ['parse_key']

_NAMED_KEYS: Final[dict[str, bytes]] = {
    'enter': b'\r',
    'cr': b'\r',
    'return': b'\r',
    'esc': b'\x1b',
    'tab': b'\t',
    'space': b' ',
    'bs': b'\x7f',
    'up': b'\x1b[A',
    'down': b'\x1b[B',
    'right': b'\x1b[C',
    'left': b'\x1b[D',
}


def parse_key(notation: str) -> bytes:
    """
    Convert key notation to terminal bytes.

    Args:
        notation: A single character, `<name>` for named keys, or `<c-x>` for
            control combinations (letters and `[\\]^_` only)

    Returns:
        Raw bytes the terminal produces for the key

    Raises:
        ValueError: If the notation is empty or not recognized
    """
    if not notation:
        raise ValueError('Empty key notation')

    if not (notation.startswith('<') and notation.endswith('>') and len(notation) > 2):
        return notation.encode()

    inner = notation[1:-1].lower()
    if inner in _NAMED_KEYS:
        return _NAMED_KEYS[inner]

    if inner.startswith('c-') and len(inner) == 3:
        char = inner[2].upper()
        code = ord(char) - 64
        if 0 < code < 32:
            return bytes([code])

    raise ValueError(f'Unknown key notation: {notation!r}')
