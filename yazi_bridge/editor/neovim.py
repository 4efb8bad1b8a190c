"""
Neovim host editor - remote control over `nvim --server ADDR --remote-expr`.

Every operation is one Vimscript expression evaluated in the running Neovim.
Ex commands go through `execute([...])`, prefixed with `win_gotoid()` when a
calling window is known so splits and tabs open relative to it. Values cross
the boundary as JSON (`json_decode('...')`) so paths with quotes, newlines or
`$` need no further escaping; paths inside Ex commands use `fnameescape`.

Buffer renames use Lua (`luaeval`) for `nvim_buf_set_name`, which has no
Vimscript counterpart.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from yazi_bridge.exceptions import EditorError
from yazi_bridge.paths import fnameescape, vim_string
from yazi_bridge.schemas.operations.actions import QuickfixEntry

__all__ = ['NeovimEditor', 'vim_value']

logger = logging.getLogger(__name__)

# logging level -> vim.log.levels
_NOTIFY_LEVELS = {
    logging.DEBUG: 1,
    logging.INFO: 2,
    logging.WARNING: 3,
    logging.ERROR: 4,
    logging.CRITICAL: 4,
}

_RENAME_BUFFER_LUA = """(function()
local old, new = _A[1], _A[2]
for _, buf in ipairs(vim.api.nvim_list_bufs()) do
  if vim.api.nvim_buf_get_name(buf) == old then
    vim.api.nvim_buf_set_name(buf, new)
    if not vim.bo[buf].modified then
      vim.api.nvim_buf_call(buf, function() vim.cmd('silent! edit') end)
    end
    return true
  end
end
return false
end)()
"""

_WIPE_BUFFER_LUA = """(function()
for _, buf in ipairs(vim.api.nvim_list_bufs()) do
  if vim.api.nvim_buf_get_name(buf) == _A then
    vim.api.nvim_buf_delete(buf, { force = true })
    return true
  end
end
return false
end)()
"""

_LIST_BUFFERS_EXPR = (
    'json_encode(map(filter(getbufinfo({"buflisted": 1}), {_, b -> b.name =~# "^/"}), {_, b -> b.name}))'
)


def vim_value(value: object) -> str:
    """Vimscript expression evaluating to `value` (anything json.dumps accepts)."""
    return f'json_decode({vim_string(json.dumps(value))})'


class NeovimEditor:
    """EditorProtocol implementation for a running Neovim."""

    def __init__(
        self,
        server: str | None = None,
        *,
        nvim_binary: str = 'nvim',
        window_id: int | None = None,
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize Neovim remote.

        Args:
            server: Server address (socket path or host:port), default $NVIM
            nvim_binary: nvim executable used as the remote client
            window_id: Window the session was opened from (window-ID, not number)
            timeout: Seconds to wait for each remote call

        Raises:
            EditorError: If no server address is given and $NVIM is not set
        """
        server = server or os.environ.get('NVIM')
        if not server:
            raise EditorError('', 'no Neovim server address (pass --server or run inside :terminal)')
        self.server = server
        self.nvim_binary = nvim_binary
        self.window_id = window_id
        self.timeout = timeout

    # ==========================================================================
    # Remote evaluation
    # ==========================================================================

    async def eval(self, expr: str) -> str:
        """Evaluate a Vimscript expression and return its string form."""
        command = [self.nvim_binary, '--server', self.server, '--remote-expr', expr]
        logger.debug('remote-expr %s', expr)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EditorError(expr, f'{self.nvim_binary} not found') from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise EditorError(expr, f'no answer from {self.server} after {self.timeout}s') from e

        if process.returncode != 0:
            raise EditorError(expr, stderr.decode(errors='replace').strip() or f'exit code {process.returncode}')
        return stdout.decode(errors='replace').removesuffix('\n')

    async def execute(self, *commands: str) -> str:
        """Run Ex commands in the calling window; returns their output."""
        lines = list(commands)
        if self.window_id is not None:
            lines.insert(0, f'call win_gotoid({self.window_id})')
        return await self.eval(f'execute({vim_value(lines)})')

    # ==========================================================================
    # EditorProtocol
    # ==========================================================================

    async def open_buffer(self, path: Path) -> None:
        await self.execute(f'edit {fnameescape(path)}')

    async def open_split(self, path: Path, *, vertical: bool) -> None:
        split = 'vsplit' if vertical else 'split'
        await self.execute(f'{split} {fnameescape(path)}')

    async def open_tab(self, path: Path, window_options: Mapping[str, object]) -> None:
        commands = [f'tabedit {fnameescape(path)}']
        # After tabedit the new window is current
        commands.extend(
            f'call setwinvar(0, {vim_string("&" + name)}, {vim_value(value)})' for name, value in window_options.items()
        )
        await self.execute(*commands)

    async def get_window_options(self, names: Sequence[str]) -> dict[str, object]:
        window = self.window_id if self.window_id is not None else 0
        items = ', '.join(f'{vim_string(name)}: getwinvar({window}, {vim_string("&" + name)})' for name in names)
        return json.loads(await self.eval(f'json_encode({{{items}}})'))

    async def set_reference_list(self, entries: Sequence[QuickfixEntry]) -> None:
        items = [entry.model_dump() for entry in entries]
        await self.eval(f'setqflist({vim_value(items)}, "r")')
        await self.execute('copen')

    async def write_register(self, name: str, text: str) -> None:
        await self.eval(f'setreg({vim_string(name)}, {vim_value(text)})')

    async def list_buffer_paths(self) -> list[Path]:
        return [Path(name) for name in json.loads(await self.eval(_LIST_BUFFERS_EXPR))]

    async def rename_buffer_path(self, old: Path, new: Path) -> bool:
        result = await self.eval(f'luaeval({vim_value(_RENAME_BUFFER_LUA)}, {vim_value([str(old), str(new)])})')
        return result.strip() in ('v:true', 'true', '1')

    async def wipe_buffer(self, path: Path) -> bool:
        result = await self.eval(f'luaeval({vim_value(_WIPE_BUFFER_LUA)}, {vim_value(str(path))})')
        return result.strip() in ('v:true', 'true', '1')

    async def run_command(self, command: str) -> str:
        return await self.execute(command)

    async def set_cwd(self, path: Path) -> None:
        await self.execute(f'cd {fnameescape(path)}')

    async def notify(self, message: str, level: int = logging.INFO) -> None:
        vim_level = _NOTIFY_LEVELS.get(level, 2)
        await self.eval(f'luaeval("vim.notify(_A[1], _A[2])", {vim_value([message, vim_level])})')
