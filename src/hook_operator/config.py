"""Configuration management with validation.

All bounds are enforced at load time so that a misconfigured operator
fails before it issues any call against the control plane.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_CREATE_TIMEOUT_SECONDS = 300  # 5 minutes of throttling retries
DEFAULT_DELETE_TIMEOUT_SECONDS = 120
MIN_OPERATION_TIMEOUT_SECONDS = 1
MAX_OPERATION_TIMEOUT_SECONDS = 3600

DEFAULT_POLL_INTERVAL_SECONDS = 5
MIN_POLL_INTERVAL_SECONDS = 1
MAX_POLL_INTERVAL_SECONDS = 60

DEFAULT_RETRY_BACKOFF_BASE_SECONDS = 1.0
DEFAULT_RETRY_BACKOFF_MAX_SECONDS = 30.0

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60

# Heartbeat timeout bounds accepted by the control plane
MIN_HEARTBEAT_TIMEOUT_SECONDS = 30
MAX_HEARTBEAT_TIMEOUT_SECONDS = 21600
DEFAULT_HEARTBEAT_TIMEOUT_SECONDS = 600

# Security constraints
MAX_SPEC_FILE_SIZE_BYTES = 64 * 1024
MAX_STATE_FILE_SIZE_BYTES = 64 * 1024

VALID_ENDPOINT_PATTERN = r"^https://[A-Za-z0-9.-]+(:[0-9]{1,5})?(/[A-Za-z0-9._~/-]*)?$"


@dataclass(frozen=True)
class Config:
    """Operator configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-reconcile.
    """

    # Control plane
    endpoint: str = ""
    token_scope: str | None = None
    client_id: str | None = None

    # Timing
    create_timeout_seconds: int = DEFAULT_CREATE_TIMEOUT_SECONDS
    delete_timeout_seconds: int = DEFAULT_DELETE_TIMEOUT_SECONDS
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    retry_backoff_base_seconds: float = DEFAULT_RETRY_BACKOFF_BASE_SECONDS
    retry_backoff_max_seconds: float = DEFAULT_RETRY_BACKOFF_MAX_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        # An empty endpoint is allowed for in-process gateways (tests, embedding)
        if self.endpoint and not re.match(VALID_ENDPOINT_PATTERN, self.endpoint):
            errors.append(f"CONTROL_PLANE_ENDPOINT must be an https URL: {self.endpoint}")

        for name, value in (
            ("CREATE_TIMEOUT", self.create_timeout_seconds),
            ("DELETE_TIMEOUT", self.delete_timeout_seconds),
            ("REQUEST_TIMEOUT", self.request_timeout_seconds),
        ):
            if not MIN_OPERATION_TIMEOUT_SECONDS <= value <= MAX_OPERATION_TIMEOUT_SECONDS:
                errors.append(
                    f"{name} must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                    f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
                )

        if not MIN_POLL_INTERVAL_SECONDS <= self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS:
            errors.append(
                f"POLL_INTERVAL must be between {MIN_POLL_INTERVAL_SECONDS} "
                f"and {MAX_POLL_INTERVAL_SECONDS} seconds"
            )

        if self.retry_backoff_base_seconds <= 0:
            errors.append("RETRY_BACKOFF_BASE must be positive")
        elif self.retry_backoff_max_seconds < self.retry_backoff_base_seconds:
            errors.append("RETRY_BACKOFF_MAX must not be lower than RETRY_BACKOFF_BASE")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def resolved_token_scope(self) -> str:
        """Token scope requested for the control plane (defaults to endpoint/.default)."""
        if self.token_scope:
            return self.token_scope
        return f"{self.endpoint.rstrip('/')}/.default"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            CONTROL_PLANE_ENDPOINT: Base https URL of the control plane API
            CONTROL_PLANE_SCOPE: Token scope (default: <endpoint>/.default)
            MANAGED_IDENTITY_CLIENT_ID: User-assigned identity client ID
            CREATE_TIMEOUT: Retry budget for create in seconds (default: 300)
            DELETE_TIMEOUT: Deletion convergence budget in seconds (default: 120)
            POLL_INTERVAL: Seconds between convergence probes (default: 5)
            RETRY_BACKOFF_BASE: First backoff delay in seconds (default: 1)
            RETRY_BACKOFF_MAX: Backoff ceiling in seconds (default: 30)
            REQUEST_TIMEOUT: Per-request network timeout in seconds (default: 60)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        return cls(
            endpoint=os.environ.get("CONTROL_PLANE_ENDPOINT", ""),
            token_scope=os.environ.get("CONTROL_PLANE_SCOPE") or None,
            client_id=os.environ.get("MANAGED_IDENTITY_CLIENT_ID") or None,
            create_timeout_seconds=get_int("CREATE_TIMEOUT", DEFAULT_CREATE_TIMEOUT_SECONDS),
            delete_timeout_seconds=get_int("DELETE_TIMEOUT", DEFAULT_DELETE_TIMEOUT_SECONDS),
            poll_interval_seconds=get_int("POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            retry_backoff_base_seconds=get_float(
                "RETRY_BACKOFF_BASE", DEFAULT_RETRY_BACKOFF_BASE_SECONDS
            ),
            retry_backoff_max_seconds=get_float(
                "RETRY_BACKOFF_MAX", DEFAULT_RETRY_BACKOFF_MAX_SECONDS
            ),
            request_timeout_seconds=get_int("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS),
        )
