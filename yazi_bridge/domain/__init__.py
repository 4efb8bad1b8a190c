"""Domain objects for yazi-bridge."""

from yazi_bridge.domain.session import Session

__all__ = ['Session']
