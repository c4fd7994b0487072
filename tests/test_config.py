"""Tests for configuration loading."""

import os
from unittest.mock import patch

import pytest

from hook_operator.config import (
    DEFAULT_CREATE_TIMEOUT_SECONDS,
    DEFAULT_DELETE_TIMEOUT_SECONDS,
    Config,
    ConfigurationError,
)


class TestConfig:
    """Tests for Config class."""

    def test_defaults(self) -> None:
        """Test that defaults are valid and match the documented budgets."""
        config = Config()

        assert config.create_timeout_seconds == DEFAULT_CREATE_TIMEOUT_SECONDS == 300
        assert config.delete_timeout_seconds == DEFAULT_DELETE_TIMEOUT_SECONDS
        assert config.endpoint == ""

    def test_valid_endpoint(self) -> None:
        """Test that an https endpoint is accepted."""
        config = Config(endpoint="https://ess.example.com/v1")
        assert config.resolved_token_scope == "https://ess.example.com/v1/.default"

    def test_explicit_token_scope(self) -> None:
        """Test that an explicit scope overrides the derived one."""
        config = Config(endpoint="https://ess.example.com", token_scope="api://ess/.default")
        assert config.resolved_token_scope == "api://ess/.default"

    def test_http_endpoint_rejected(self) -> None:
        """Test that plain http endpoints are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(endpoint="http://ess.example.com")

        assert "CONTROL_PLANE_ENDPOINT" in str(exc_info.value)

    def test_invalid_poll_interval(self) -> None:
        """Test that out-of-range poll interval raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(poll_interval_seconds=0)

        assert "POLL_INTERVAL" in str(exc_info.value)

    def test_errors_are_aggregated(self) -> None:
        """Test that all validation errors are reported together."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(create_timeout_seconds=0, delete_timeout_seconds=99999)

        message = str(exc_info.value)
        assert "CREATE_TIMEOUT" in message
        assert "DELETE_TIMEOUT" in message

    def test_backoff_ceiling_below_base(self) -> None:
        """Test that the backoff ceiling cannot be lower than the base."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(retry_backoff_base_seconds=10, retry_backoff_max_seconds=1)

        assert "RETRY_BACKOFF_MAX" in str(exc_info.value)

    def test_from_env(self) -> None:
        """Test loading configuration from environment."""
        env = {
            "CONTROL_PLANE_ENDPOINT": "https://ess.example.com",
            "MANAGED_IDENTITY_CLIENT_ID": "11111111-2222-3333-4444-555555555555",
            "CREATE_TIMEOUT": "600",
            "POLL_INTERVAL": "2",
            "RETRY_BACKOFF_BASE": "0.5",
        }

        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()

        assert config.endpoint == "https://ess.example.com"
        assert config.client_id == "11111111-2222-3333-4444-555555555555"
        assert config.create_timeout_seconds == 600
        assert config.poll_interval_seconds == 2
        assert config.retry_backoff_base_seconds == 0.5
        assert config.delete_timeout_seconds == DEFAULT_DELETE_TIMEOUT_SECONDS

    def test_from_env_invalid_integer(self) -> None:
        """Test that non-integer values raise error."""
        with patch.dict(os.environ, {"DELETE_TIMEOUT": "soon"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env()

        assert "DELETE_TIMEOUT" in str(exc_info.value)

    def test_from_env_empty(self) -> None:
        """Test that an empty environment yields defaults."""
        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_env()

        assert config == Config()
