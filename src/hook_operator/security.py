"""Credential acquisition for the control plane gateway.

The operator authenticates with a managed identity only. Secret-bearing
credential variables in the environment are treated as a fatal
misconfiguration and block startup.
"""

from __future__ import annotations

import logging
import os

from azure.identity import ManagedIdentityCredential

logger = logging.getLogger(__name__)

# Environment variables that indicate credential leakage
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
    "CONTROL_PLANE_ACCESS_KEY",
    "CONTROL_PLANE_SECRET_KEY",
)


class SecretlessViolationError(Exception):
    """Raised when a secret-bearing credential is present in the environment."""

    pass


def enforce_secretless_environment() -> None:
    """Refuse to continue when credential secrets are present in the environment.

    Raises:
        SecretlessViolationError: If any forbidden variable is set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secret credential detected in environment",
                extra={"security_event": "credential_detected", "env_var": env_var},
            )
            raise SecretlessViolationError(
                f"{env_var} is set. Only managed identity authentication is supported; "
                f"remove the variable and assign a managed identity instead."
            )


def get_managed_identity_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Return a ManagedIdentityCredential after checking the environment.

    Args:
        client_id: Client ID of a user-assigned identity. None selects the
            system-assigned identity.

    Raises:
        SecretlessViolationError: If credential environment variables are detected.
    """
    enforce_secretless_environment()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()
