"""
Terminal proxy - connects the user's terminal to a session's pty.

The CLI runs inside a Neovim `:terminal`. In raw mode every key press is read
from stdin and handed to a key handler (the ProcessBridge decides whether it is
a close key); whatever yazi or the nested editor draws is written straight to
stdout. Window size changes (SIGWINCH) are forwarded as pty resizes.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import signal
import termios
import tty
from collections.abc import Awaitable, Callable, Iterator

__all__ = ['TerminalProxy']

type KeyHandler = Callable[[bytes], Awaitable[None]]
type ResizeHandler = Callable[[int, int], None]

READ_CHUNK_SIZE = 4096


class TerminalProxy:
    """Raw-mode stdin/stdout plumbing for one interactive session."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state: list | None = None
        self._key_tasks: set[asyncio.Task[None]] = set()
        self._pending: asyncio.Task[None] | None = None

    @property
    def size(self) -> tuple[int, int]:
        """Current (rows, cols) of the user's terminal."""
        columns, lines = shutil.get_terminal_size()
        return lines, columns

    def write(self, data: bytes) -> None:
        """Output callback for TerminalSurface."""
        view = memoryview(data)
        while view:
            written = os.write(self.stdout_fd, view)
            view = view[written:]

    @contextlib.contextmanager
    def raw_mode(self) -> Iterator[None]:
        """Put stdin in raw mode; the previous tty state is restored on exit."""
        if not os.isatty(self.stdin_fd):
            yield
            return
        self._saved_tty_state = termios.tcgetattr(self.stdin_fd)
        try:
            tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
            yield
        finally:
            termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)
            self._saved_tty_state = None

    @contextlib.contextmanager
    def attached(self, on_keys: KeyHandler, on_resize: ResizeHandler) -> Iterator[None]:
        """Forward stdin to `on_keys` and SIGWINCH to `on_resize` while inside the block."""
        loop = asyncio.get_running_loop()

        def read_ready() -> None:
            try:
                data = os.read(self.stdin_fd, READ_CHUNK_SIZE)
            except BlockingIOError:
                return
            if not data:
                loop.remove_reader(self.stdin_fd)
                return
            self._dispatch(on_keys, data)

        def window_changed() -> None:
            on_resize(*self.size)

        loop.add_reader(self.stdin_fd, read_ready)
        loop.add_signal_handler(signal.SIGWINCH, window_changed)
        try:
            yield
        finally:
            loop.remove_reader(self.stdin_fd)
            loop.remove_signal_handler(signal.SIGWINCH)

    def _dispatch(self, on_keys: KeyHandler, data: bytes) -> None:
        # Chain handlers so key chunks are delivered in the order they were read
        previous = self._pending

        async def deliver() -> None:
            if previous is not None:
                await previous
            await on_keys(data)

        task = asyncio.get_running_loop().create_task(deliver())
        self._pending = task
        self._key_tasks.add(task)
        task.add_done_callback(self._key_tasks.discard)
