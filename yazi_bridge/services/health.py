"""
Health check - are the external programs installed, and new enough?
"""

from __future__ import annotations

import re
import shutil
import subprocess

import packaging.version

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.schemas.types import BaseStrictModel

__all__ = ['HealthReport', 'ToolStatus', 'check_health', 'parse_version_output']

VERSION_PATTERN = re.compile(r'(\d+\.\d+(?:\.\d+)?)')


class ToolStatus(BaseStrictModel):
    """One external program."""

    name: str
    path: str | None
    version: str | None = None

    @property
    def found(self) -> bool:
        return self.path is not None


class HealthReport(BaseStrictModel):
    yazi: ToolStatus
    ya: ToolStatus
    nvim: ToolStatus
    min_yazi_version: str

    @property
    def yazi_version_ok(self) -> bool:
        if self.yazi.version is None:
            return False
        return packaging.version.Version(self.yazi.version) >= packaging.version.Version(self.min_yazi_version)

    @property
    def ok(self) -> bool:
        return self.yazi.found and self.ya.found and self.nvim.found and self.yazi_version_ok

    def problems(self) -> list[str]:
        problems = [f'{tool.name} not found in PATH' for tool in (self.yazi, self.ya, self.nvim) if not tool.found]
        if self.yazi.found and not self.yazi_version_ok:
            found = self.yazi.version or 'unknown'
            problems.append(f'yazi {found} is older than the required {self.min_yazi_version}')
        return problems


def parse_version_output(output: str) -> str | None:
    """
    Extract the first version number from `--version` output.

    "Yazi 0.4.2 (f6e5b4a 2024-12-01)" -> "0.4.2", "NVIM v0.10.1" -> "0.10.1"
    """
    match = VERSION_PATTERN.search(output)
    if match is None:
        return None
    try:
        return str(packaging.version.Version(match.group(1)))
    except packaging.version.InvalidVersion:
        return None


def check_health(settings: BridgeSettings, timeout: float = 5.0) -> HealthReport:
    """Locate yazi, ya and nvim and read their versions."""
    return HealthReport(
        yazi=_inspect_tool('yazi', settings.YAZI_BINARY, timeout),
        ya=_inspect_tool('ya', settings.YA_BINARY, timeout),
        nvim=_inspect_tool('nvim', settings.NVIM_BINARY, timeout),
        min_yazi_version=settings.MIN_YAZI_VERSION,
    )


def _inspect_tool(name: str, binary: str, timeout: float) -> ToolStatus:
    path = shutil.which(binary)
    if path is None:
        return ToolStatus(name=name, path=None)

    try:
        completed = subprocess.run(
            [path, '--version'],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return ToolStatus(name=name, path=path)

    return ToolStatus(name=name, path=path, version=parse_version_output(completed.stdout + completed.stderr))
