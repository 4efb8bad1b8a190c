"""
Tests for TerminalSurface with real children on a pty.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from yazi_bridge.exceptions import LaunchError
from yazi_bridge.services.terminal import TerminalSurface

# Far more than a pty buffer holds
NOISY = ['sh', '-c', 'head -c 200000 /dev/zero | tr "\\0" x']


def test_output_is_drained_without_a_callback(tmp_path: Path) -> None:
    async def scenario() -> int:
        surface = await TerminalSurface.spawn(NOISY, cwd=tmp_path)
        try:
            return await asyncio.wait_for(surface.wait(), timeout=10)
        finally:
            surface.close()

    assert asyncio.run(scenario()) == 0


def test_output_reaches_callback(tmp_path: Path) -> None:
    received: list[bytes] = []

    async def scenario() -> None:
        surface = await TerminalSurface.spawn(NOISY, cwd=tmp_path, on_output=received.append)
        try:
            await asyncio.wait_for(surface.wait(), timeout=10)
            # Let the reader catch up with what is left in the pty
            for _ in range(100):
                if sum(map(len, received)) >= 200000:
                    break
                await asyncio.sleep(0.01)
        finally:
            surface.close()

    asyncio.run(scenario())

    assert sum(data.count(b'x') for data in received) == 200000


def test_missing_program_is_a_launch_error(tmp_path: Path) -> None:
    with pytest.raises(LaunchError) as exc_info:
        asyncio.run(TerminalSurface.spawn(['yazi-bridge-no-such-program'], cwd=tmp_path))

    assert exc_info.value.command == ['yazi-bridge-no-such-program']


def test_terminate_stops_the_child(tmp_path: Path) -> None:
    async def scenario() -> int | None:
        surface = await TerminalSurface.spawn(['sleep', '30'], cwd=tmp_path)
        await surface.terminate(timeout=5)
        return surface.returncode

    assert asyncio.run(scenario()) is not None
