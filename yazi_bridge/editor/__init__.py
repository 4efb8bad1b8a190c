"""Host editor implementations."""

from yazi_bridge.editor.detached import DetachedEditor
from yazi_bridge.editor.logger import EditorLogger
from yazi_bridge.editor.neovim import NeovimEditor

__all__ = ['DetachedEditor', 'EditorLogger', 'NeovimEditor']
