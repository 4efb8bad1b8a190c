"""
Terminal surface - a child process attached to a pseudo-terminal.

Both yazi and the nested rename editor are full-screen terminal programs. Each
one gets its own pty pair: the child owns the slave side, the bridge keeps the
master side, writes key input to it and forwards everything the child draws to
an output callback (normally the user's terminal).
"""

from __future__ import annotations

import asyncio
import fcntl
import logging
import os
import pty
import struct
import termios
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import psutil

from yazi_bridge.exceptions import LaunchError

__all__ = ['OutputCallback', 'TerminalSurface']

logger = logging.getLogger(__name__)

type OutputCallback = Callable[[bytes], None]

READ_CHUNK_SIZE = 65536


class TerminalSurface:
    """
    A process running on its own pseudo-terminal.

    Use `spawn()` to create instances; the constructor only wires up already
    created resources.
    """

    def __init__(self, process: asyncio.subprocess.Process, master_fd: int, command: Sequence[str]) -> None:
        self.process = process
        self.master_fd = master_fd
        self.command = list(command)
        self._on_output: OutputCallback | None = None
        self._reading = False
        self._closed = False

    @classmethod
    async def spawn(
        cls,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        size: tuple[int, int] = (24, 80),
        on_output: OutputCallback | None = None,
    ) -> TerminalSurface:
        """
        Start `command` on a new pty.

        Args:
            command: Program and arguments
            cwd: Working directory for the child
            env: Extra environment variables (merged over os.environ)
            size: Initial (rows, cols) of the terminal
            on_output: Receives everything the child writes to its terminal

        Returns:
            Running terminal surface

        Raises:
            LaunchError: If the program cannot be executed
        """
        master_fd, slave_fd = pty.openpty()
        _set_window_size(slave_fd, *size)

        child_env = dict(os.environ)
        child_env.setdefault('TERM', 'xterm-256color')
        if env:
            child_env.update(env)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=child_env,
                start_new_session=True,  # Child becomes session leader; pty is its controlling terminal
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            os.close(master_fd)
            raise LaunchError(command, str(e)) from e
        finally:
            os.close(slave_fd)

        logger.debug('Spawned %s (pid %s) on pty fd %s', command[0], process.pid, master_fd)
        surface = cls(process, master_fd, command)
        surface.set_output(on_output)
        surface._start_reading()
        return surface

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    def set_output(self, on_output: OutputCallback | None) -> None:
        """Route child output to `on_output`. None drops output until a callback is set."""
        self._on_output = on_output

    def write(self, data: bytes) -> None:
        """Send raw key input to the child."""
        if self._closed:
            logger.debug('Dropping %d byte(s) written to closed terminal %s', len(data), self.command[0])
            return
        view = memoryview(data)
        while view:
            written = os.write(self.master_fd, view)
            view = view[written:]

    def resize(self, rows: int, cols: int) -> None:
        """Change the terminal size; the kernel delivers SIGWINCH so the child redraws."""
        if not self._closed:
            _set_window_size(self.master_fd, rows, cols)

    async def wait(self) -> int:
        """Wait for the child to exit and return its exit code."""
        return await self.process.wait()

    async def terminate(self, timeout: float) -> None:
        """
        Stop the child and everything it started (previewers, shells).

        Children are terminated first, then the process itself; anything still
        alive after `timeout` seconds is killed.
        """
        if self.process.returncode is None:
            try:
                children = psutil.Process(self.process.pid).children(recursive=True)
            except psutil.NoSuchProcess:
                children = []

            for child in children:
                try:
                    child.terminate()
                except psutil.NoSuchProcess:
                    pass

            try:
                self.process.terminate()
            except ProcessLookupError:
                pass

            try:
                await asyncio.wait_for(self.process.wait(), timeout=timeout)
            except TimeoutError:
                logger.warning('%s (pid %s) did not exit after %.1fs, killing', self.command[0], self.pid, timeout)
                self.process.kill()
                await self.process.wait()

            _, alive = await asyncio.to_thread(psutil.wait_procs, children, timeout=timeout)
            for child in alive:
                child.kill()

        self.close()

    def close(self) -> None:
        """Release the pty. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._reading:
            asyncio.get_running_loop().remove_reader(self.master_fd)
            self._reading = False
        os.close(self.master_fd)

    def _start_reading(self) -> None:
        # Output is read even without a callback; a child blocks once the pty buffer is full
        asyncio.get_running_loop().add_reader(self.master_fd, self._read_ready)
        self._reading = True

    def _read_ready(self) -> None:
        try:
            data = os.read(self.master_fd, READ_CHUNK_SIZE)
        except OSError:
            # EIO once the slave side is closed (child exited)
            data = b''

        if not data:
            asyncio.get_running_loop().remove_reader(self.master_fd)
            self._reading = False
            return

        if self._on_output is not None:
            self._on_output(data)


def _set_window_size(fd: int, rows: int, cols: int) -> None:
    # struct winsize: rows, cols, xpix, ypix
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack('HHHH', rows, cols, 0, 0))
