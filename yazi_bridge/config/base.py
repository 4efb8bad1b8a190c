"""
Base configuration for yazi-bridge.

Shared settings and helper functions for settings loading.
"""

from __future__ import annotations

import logging
import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='BaseBridgeSettings')


class BaseBridgeSettings(pydantic_settings.BaseSettings):
    """Application metadata and logging configuration."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='YAZI_BRIDGE_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown settings in .env
    )

    # Application metadata
    APP_NAME: str = 'yazi-bridge'
    VERSION: str = '0.1.0'

    # Logging (inside a terminal proxy the tty belongs to yazi, so LOG_FILE is
    # the only useful sink for debug output)
    LOG_LEVEL: str = 'WARNING'
    LOG_FILE: pathlib.Path | None = None

    @pydantic.field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f'LOG_LEVEL must be a logging level name, got {v!r}')
        return level


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Build bridge settings from YAZI_BRIDGE_* variables and, optionally, a .env file.

    The .env file is only read when named, either by `env_file` or by the
    LOAD_ENV_FILE variable; a stray .env in the working directory of the
    editor is never picked up.

    Raises:
        FileNotFoundError: If the named .env file does not exist
        pydantic.ValidationError: If a value is invalid
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class(_env_file=None)  # No .env file, load from environment only

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Module-level settings object that reads the environment on first attribute access.

    Importing a module that holds one never fails on bad configuration; the
    ValidationError surfaces where the settings are first used.
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))
