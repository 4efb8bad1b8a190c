"""Service layer: process bridge, selection, actions and bulk rename."""

from yazi_bridge.services.bridge import ProcessBridge
from yazi_bridge.services.buffer_sync import BufferSync
from yazi_bridge.services.dispatcher import ActionDispatcher
from yazi_bridge.services.health import HealthReport, check_health
from yazi_bridge.services.registry import SessionRegistry
from yazi_bridge.services.rename import BulkRenameTransaction, plan_renames
from yazi_bridge.services.selection import SelectionTracker
from yazi_bridge.services.terminal import TerminalSurface

__all__ = [
    'ActionDispatcher',
    'BufferSync',
    'BulkRenameTransaction',
    'HealthReport',
    'ProcessBridge',
    'SelectionTracker',
    'SessionRegistry',
    'TerminalSurface',
    'check_health',
    'plan_renames',
]
