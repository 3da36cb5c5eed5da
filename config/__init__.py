"""Configuration management module."""

from .schema import (
    TIMEFRAMES,
    AppConfig,
    StrategyConfig,
    load_app_config,
    load_messages,
)

__all__ = [
    "TIMEFRAMES",
    "AppConfig",
    "StrategyConfig",
    "load_app_config",
    "load_messages",
]
