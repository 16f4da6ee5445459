"""Configuration loader with validation and singleton access."""

import logging
import os
import yaml
from pathlib import Path
from typing import Mapping, Optional

from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .models import AppConfig, Credentials

logger = logging.getLogger(__name__)

# Global config singleton
_config: Optional[AppConfig] = None

_REQUIRED_ENV = {
    "okx_api_key": "OKX_API_KEY",
    "okx_api_secret_key": "OKX_API_SECRET_KEY",
    "okx_api_passphrase": "OKX_API_PASSPHRASE",
    "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
    "authorized_user_id": "AUTHORIZED_USER_ID",
}


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """
    Load and validate configuration from a YAML file.

    A missing path falls back to defaults so the monitor can run with
    environment variables only.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ConfigurationError: If config validation fails
        yaml.YAMLError: If YAML parsing fails
    """
    global _config

    raw_config = {}
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from: {config_path}")
        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

    try:
        _config = AppConfig(**raw_config)
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    # Log loaded configuration for audit trail
    intervals = _config.monitor.intervals
    logger.info("Configuration loaded successfully:")
    logger.info(f"  Exchange: {_config.exchange.base_url} (timeout {_config.exchange.request_timeout_seconds}s)")
    logger.info(f"  Quote currency: {_config.exchange.quote_currency}")
    logger.info(f"  Store backend: {_config.store.backend} (namespace '{_config.store.namespace}')")
    logger.info(f"  Balance interval: {intervals.balance_reconciliation}s")
    logger.info(f"  Price alert interval: {intervals.price_alerts}s")
    logger.info(f"  Movement interval: {intervals.price_movements}s")
    logger.info(f"  Default movement threshold: {_config.monitor.default_movement_threshold_percent}%")
    logger.info(f"  Notifications enabled: {_config.notifications.enabled}")

    return _config


def get_config() -> AppConfig:
    """
    Get the current loaded configuration.

    Raises:
        RuntimeError: If config hasn't been loaded yet
    """
    if _config is None:
        raise RuntimeError(
            "Configuration not loaded. Call load_config() first."
        )
    return _config


def load_credentials(environ: Optional[Mapping[str, str]] = None) -> Credentials:
    """
    Build the credentials object from environment variables.

    Raises:
        ConfigurationError: If a required variable is missing or malformed
    """
    environ = os.environ if environ is None else environ

    missing = [name for name in _REQUIRED_ENV.values() if not environ.get(name, '').strip()]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    values = {field: environ[name].strip() for field, name in _REQUIRED_ENV.items()}
    channel = environ.get('TARGET_CHANNEL_ID', '').strip()
    if channel:
        values['target_channel_id'] = channel
    redis_url = environ.get('REDIS_URL', '').strip()
    if redis_url:
        values['redis_url'] = redis_url

    try:
        return Credentials(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid credentials: {e}") from e
