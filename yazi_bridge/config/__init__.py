"""Configuration for yazi-bridge."""

from yazi_bridge.config.base import BaseBridgeSettings, get_settings, lazy_settings
from yazi_bridge.config.bridge import BridgeSettings, settings

__all__ = ['BaseBridgeSettings', 'BridgeSettings', 'get_settings', 'lazy_settings', 'settings']
