"""Tests for configuration loading and credentials."""

import pytest

from portfolio_monitor.config import AppConfig, get_config, load_config, load_credentials
from portfolio_monitor.exceptions import ConfigurationError

ENVIRONMENT = {
    "OKX_API_KEY": "key",
    "OKX_API_SECRET_KEY": "secret",
    "OKX_API_PASSPHRASE": "phrase",
    "TELEGRAM_BOT_TOKEN": "123:abc",
    "AUTHORIZED_USER_ID": "42",
}


class TestLoadConfig:

    def test_defaults_without_file(self):
        config = load_config()

        assert config.exchange.quote_currency == "USDT"
        assert config.monitor.epsilon == 1e-9
        assert config.monitor.intervals.price_alerts == 30
        assert config.monitor.intervals.daily_rollup == 86400
        assert config.store.namespace == "monitor:"
        assert get_config() is config

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "exchange:\n"
            "  quote_currency: usdc\n"
            "monitor:\n"
            "  default_movement_threshold_percent: 3.5\n"
            "  intervals:\n"
            "    price_movements: 120\n"
            "store:\n"
            "  backend: memory\n"
        )

        config = load_config(path)

        assert config.exchange.quote_currency == "USDC"
        assert config.monitor.default_movement_threshold_percent == 3.5
        assert config.monitor.intervals.price_movements == 120
        assert config.store.backend == "memory"

    def test_invalid_values_raise_configuration_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  backend: sqlite\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_explicit_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_logging_level_is_normalized(self):
        assert AppConfig(logging={"level": "debug"}).logging.level == "DEBUG"


class TestLoadCredentials:

    def test_required_values(self):
        credentials = load_credentials(ENVIRONMENT)

        assert credentials.okx_api_key == "key"
        assert credentials.authorized_user_id == 42
        assert credentials.target_channel_id is None
        assert credentials.redis_url == "redis://localhost:6379/0"

    def test_optional_values(self):
        credentials = load_credentials({
            **ENVIRONMENT,
            "TARGET_CHANNEL_ID": "@portfolio",
            "REDIS_URL": "redis://cache:6379/1",
        })

        assert credentials.target_channel_id == "@portfolio"
        assert credentials.redis_url == "redis://cache:6379/1"

    def test_missing_values_are_listed(self):
        environment = dict(ENVIRONMENT)
        del environment["OKX_API_PASSPHRASE"]
        environment["TELEGRAM_BOT_TOKEN"] = "  "

        with pytest.raises(ConfigurationError) as exc_info:
            load_credentials(environment)

        assert "OKX_API_PASSPHRASE" in str(exc_info.value)
        assert "TELEGRAM_BOT_TOKEN" in str(exc_info.value)

    def test_non_numeric_user_id_is_rejected(self):
        with pytest.raises(ConfigurationError):
            load_credentials({**ENVIRONMENT, "AUTHORIZED_USER_ID": "me"})
