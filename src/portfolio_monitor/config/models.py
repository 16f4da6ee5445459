"""Pydantic models for monitor configuration with validation."""

from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator


class ExchangeConfig(BaseModel):
    """OKX REST API settings."""

    base_url: str = Field(
        default="https://www.okx.com",
        description="Base URL of the OKX REST API"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Total timeout for a single exchange request"
    )
    quote_currency: str = Field(
        default="USDT",
        description="Quote currency used to price every held asset"
    )
    instrument_type: Literal["SPOT"] = Field(
        default="SPOT",
        description="Instrument type requested from the tickers endpoint"
    )

    @field_validator("quote_currency")
    @classmethod
    def normalize_quote_currency(cls, v: str) -> str:
        return v.strip().upper()


class IntervalsConfig(BaseModel):
    """Polling cadence of each monitoring task, in seconds."""

    balance_reconciliation: float = Field(default=60.0, ge=5.0, le=3600.0)
    price_alerts: float = Field(default=30.0, ge=5.0, le=3600.0)
    price_movements: float = Field(default=60.0, ge=5.0, le=3600.0)
    position_extrema: float = Field(default=60.0, ge=5.0, le=3600.0)
    hourly_rollup: float = Field(default=3600.0, ge=60.0, le=86400.0)
    daily_rollup: float = Field(default=86400.0, ge=3600.0, le=604800.0)


class MonitorConfig(BaseModel):
    """Bookkeeping parameters for the monitoring engine."""

    epsilon: float = Field(
        default=1e-9,
        gt=0.0,
        le=0.001,
        description="Quantities at or below this value are treated as zero"
    )
    default_movement_threshold_percent: float = Field(
        default=5.0,
        ge=0.1,
        le=100.0,
        description="Global movement threshold used until the user changes it"
    )
    daily_history_limit: int = Field(
        default=30,
        ge=2,
        le=365,
        description="Number of daily portfolio points kept"
    )
    hourly_history_limit: int = Field(
        default=72,
        ge=2,
        le=720,
        description="Number of hourly portfolio points kept"
    )
    minimum_asset_value_usd: float = Field(
        default=1.0,
        ge=0.0,
        le=100.0,
        description="Assets worth less than this are left out of portfolio totals"
    )
    intervals: IntervalsConfig = Field(
        default_factory=IntervalsConfig,
        description="Polling interval per task"
    )


class StoreConfig(BaseModel):
    """State store settings."""

    backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="redis for production, memory for local runs"
    )
    namespace: str = Field(
        default="monitor:",
        description="Prefix applied to every stored key"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a redis command on connection errors"
    )
    retry_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Base delay between redis retries"
    )


class NotificationsConfig(BaseModel):
    """Telegram delivery settings."""

    enabled: bool = Field(
        default=True,
        description="Disable to only log notifications"
    )
    api_base_url: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout for a single delivery request"
    )


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    format: Literal["text", "json"] = Field(default="text")
    file_path: Optional[str] = Field(
        default=None,
        description="When set, logs are also written to a daily rotated file"
    )
    backup_count: int = Field(default=30, ge=1, le=365)

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class AppConfig(BaseModel):
    """Root application configuration."""

    exchange: ExchangeConfig = Field(
        default_factory=ExchangeConfig,
        description="Exchange API settings"
    )
    monitor: MonitorConfig = Field(
        default_factory=MonitorConfig,
        description="Monitoring engine settings"
    )
    store: StoreConfig = Field(
        default_factory=StoreConfig,
        description="State store settings"
    )
    notifications: NotificationsConfig = Field(
        default_factory=NotificationsConfig,
        description="Notification delivery settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )


class Credentials(BaseModel):
    """Secrets and identifiers read from the environment."""

    okx_api_key: str
    okx_api_secret_key: str
    okx_api_passphrase: str
    telegram_bot_token: str
    authorized_user_id: int
    target_channel_id: Optional[str] = None
    redis_url: str = "redis://localhost:6379/0"
