"""Logging setup and controller wiring for the lifecycle hook operator."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from .config import Config, ConfigurationError
from .controller import LifecycleController
from .gateway import RemoteGateway, RestGateway
from .models import HookRecord
from .security import get_managed_identity_credential

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from the HTTP stack
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_gateway(config: Config) -> RestGateway:
    """Build the REST gateway with a managed identity credential.

    Raises:
        ConfigurationError: No endpoint is configured.
        SecretlessViolationError: Secret credentials found in the environment.
    """
    if not config.endpoint:
        raise ConfigurationError("CONTROL_PLANE_ENDPOINT is required")

    credential = get_managed_identity_credential(config.client_id)
    return RestGateway(
        config.endpoint,
        credential=credential,
        token_scope=config.resolved_token_scope,
        request_timeout_seconds=config.request_timeout_seconds,
    )


def build_controller(
    config: Config,
    record: HookRecord,
    gateway: RemoteGateway | None = None,
) -> LifecycleController:
    """Wire a controller for one persisted record.

    A gateway is built from the config unless one is passed in.
    """
    return LifecycleController(gateway or build_gateway(config), config, record=record)
