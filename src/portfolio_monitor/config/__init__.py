"""Configuration management for the portfolio monitor."""

from .models import (
    AppConfig,
    ExchangeConfig,
    IntervalsConfig,
    MonitorConfig,
    StoreConfig,
    NotificationsConfig,
    LoggingConfig,
    Credentials,
)
from .loader import load_config, get_config, load_credentials

__all__ = [
    "AppConfig",
    "ExchangeConfig",
    "IntervalsConfig",
    "MonitorConfig",
    "StoreConfig",
    "NotificationsConfig",
    "LoggingConfig",
    "Credentials",
    "load_config",
    "get_config",
    "load_credentials",
]
