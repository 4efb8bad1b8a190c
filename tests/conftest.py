"""
Shared fixtures: a recording editor, a scripted terminal and ready-made sessions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.domain.session import Session
from yazi_bridge.paths import PathResolver
from yazi_bridge.schemas.operations.actions import QuickfixEntry


class FakeEditor:
    """EditorProtocol implementation that records every call."""

    def __init__(self, buffers: Sequence[Path] = (), window_options: Mapping[str, object] | None = None) -> None:
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.buffers: list[Path] = list(buffers)
        self.window_options: dict[str, object] = dict(window_options or {'number': True, 'relativenumber': False})
        self.tabs: list[tuple[Path, dict[str, object]]] = []
        self.registers: dict[str, str] = {}
        self.quickfix: list[QuickfixEntry] = []
        self.notifications: list[tuple[str, int]] = []
        self.cwd: Path | None = None

    async def open_buffer(self, path: Path) -> None:
        self.calls.append(('open_buffer', (path,)))

    async def open_split(self, path: Path, *, vertical: bool) -> None:
        self.calls.append(('open_split', (path, vertical)))

    async def open_tab(self, path: Path, window_options: Mapping[str, object]) -> None:
        self.calls.append(('open_tab', (path,)))
        self.tabs.append((path, dict(window_options)))

    async def get_window_options(self, names: Sequence[str]) -> dict[str, object]:
        self.calls.append(('get_window_options', tuple(names)))
        return {name: self.window_options[name] for name in names if name in self.window_options}

    async def set_reference_list(self, entries: Sequence[QuickfixEntry]) -> None:
        self.calls.append(('set_reference_list', (list(entries),)))
        self.quickfix = list(entries)

    async def write_register(self, name: str, text: str) -> None:
        self.calls.append(('write_register', (name, text)))
        self.registers[name] = text

    async def list_buffer_paths(self) -> list[Path]:
        return list(self.buffers)

    async def rename_buffer_path(self, old: Path, new: Path) -> bool:
        if old not in self.buffers:
            return False
        self.calls.append(('rename_buffer_path', (old, new)))
        self.buffers[self.buffers.index(old)] = new
        return True

    async def wipe_buffer(self, path: Path) -> bool:
        if path not in self.buffers:
            return False
        self.calls.append(('wipe_buffer', (path,)))
        self.buffers.remove(path)
        return True

    async def run_command(self, command: str) -> str:
        self.calls.append(('run_command', (command,)))
        return ''

    async def set_cwd(self, path: Path) -> None:
        self.calls.append(('set_cwd', (path,)))
        self.cwd = path

    async def notify(self, message: str, level: int = logging.INFO) -> None:
        self.notifications.append((message, level))

    @property
    def action_calls(self) -> list[tuple[str, tuple[object, ...]]]:
        """Calls with a visible effect in the editor (reads excluded)."""
        return [call for call in self.calls if call[0] != 'get_window_options']


class FakeTerminal:
    """Stands in for TerminalSurface; exits when the test says so."""

    def __init__(self) -> None:
        self.written: list[bytes] = []
        self.sizes: list[tuple[int, int]] = []
        self.output = None
        self.output_history: list[object] = []
        self.returncode: int | None = None
        self.terminated = False
        self.closed = False
        self._exited = asyncio.Event()

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def resize(self, rows: int, cols: int) -> None:
        self.sizes.append((rows, cols))

    def set_output(self, on_output: object) -> None:
        self.output = on_output
        self.output_history.append(on_output)

    def exit(self, returncode: int) -> None:
        self.returncode = returncode
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode

    async def terminate(self, timeout: float) -> None:
        self.terminated = True
        if self.returncode is None:
            self.exit(-15)
        self.close()

    def close(self) -> None:
        self.closed = True


def make_session(
    root: Path,
    *,
    region_id: str = 'tab-1',
    terminal: FakeTerminal | None = None,
    chooser_file: Path | None = None,
) -> Session:
    """Session bound to a FakeTerminal, without any real processes."""
    resolver = PathResolver(root)
    return Session(
        id='42',
        region_id=region_id,
        root_path=resolver.root,
        resolver=resolver,
        working_directory=resolver.base,
        chooser_file=chooser_file or root.parent / 'chooser.txt',
        terminal=terminal or FakeTerminal(),  # type: ignore[arg-type]
    )


@pytest.fixture
def editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings(_env_file=None)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """
    A small project tree:

        project/
            file1.txt
            file2.txt
            file3.txt
            dir with spaces/file1.txt
            routes/posts.$postId/route.tsx
    """
    root = tmp_path / 'project'
    root.mkdir()
    for name in ('file1.txt', 'file2.txt', 'file3.txt'):
        (root / name).write_text(f'{name}\n')
    (root / 'dir with spaces').mkdir()
    (root / 'dir with spaces' / 'file1.txt').write_text('nested\n')
    (root / 'routes' / 'posts.$postId').mkdir(parents=True)
    (root / 'routes' / 'posts.$postId' / 'route.tsx').write_text('export {}\n')
    return root
