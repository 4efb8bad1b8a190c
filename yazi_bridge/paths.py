"""
Path utilities for the yazi bridge.

Relative paths are always computed against the path the session was started
on (the "root"), not against the directory yazi happens to be browsing. When
the root is a file, its parent directory is the base:

    root=/project/initial-file.txt, path=/project/routes/posts.$postId/route.tsx
        -> 'routes/posts.$postId/route.tsx'

Escaping helpers make paths with spaces, `$`, `%` and `#` safe to embed in Ex
commands and Vimscript expressions.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

__all__ = ['PathResolver', 'fnameescape', 'vim_string']

# Characters Vim's fnameescape() backslash-escapes on Unix
_FNAME_SPECIAL_CHARS = frozenset(' \t\n*?[{`$\\%#\'"|!<')


class PathResolver:
    """Computes paths relative to a session's root file or directory."""

    def __init__(self, root: Path | str) -> None:
        """
        Initialize path resolver.

        Args:
            root: File or directory the session was started on
        """
        self.root = Path(root).absolute()
        self.base = self.root if self.root.is_dir() else self.root.parent

    def relative(self, path: Path | str) -> str:
        """
        Path relative to the root base, with forward slashes.

        Paths outside the base get `..` components rather than failing.

        Args:
            path: Absolute path (relative paths are taken as relative to the base)

        Returns:
            Relative path string
        """
        target = Path(path)
        if not target.is_absolute():
            target = self.base / target
        return Path(os.path.relpath(target, self.base)).as_posix()

    def relative_many(self, paths: Iterable[Path | str]) -> str:
        """Newline-joined relative paths, in the given order."""
        return '\n'.join(self.relative(p) for p in paths)


def fnameescape(path: Path | str) -> str:
    """
    Escape a path for use as an Ex command argument.

    Mirrors Vim's fnameescape(): backslash before special characters, plus
    the leading '+' / '>' and lone '-' cases.

    Examples:
        >>> fnameescape('dir with spaces/file1.txt')
        'dir\\\\ with\\\\ spaces/file1.txt'

        >>> fnameescape('routes/posts.$postId/route.tsx')
        'routes/posts.\\\\$postId/route.tsx'
    """
    text = str(path)
    escaped = ''.join(f'\\{ch}' if ch in _FNAME_SPECIAL_CHARS else ch for ch in text)
    if escaped == '-' or escaped[:1] in ('+', '>'):
        escaped = '\\' + escaped
    return escaped


def vim_string(text: str) -> str:
    """Single-quoted Vim string literal (no escapes except doubled quotes)."""
    return "'" + text.replace("'", "''") + "'"
