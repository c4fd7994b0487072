"""Reads lifecycle hook state back from the control plane.

The StateReconciler is the single source of truth used to repopulate local
state after every create and update, and as the polling probe while waiting
for deletion. It never mutates remote state.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .errors import FatalOperationError, HookNotFoundError, is_not_found
from .gateway import RemoteGateway
from .models import ObservedState

logger = logging.getLogger(__name__)

DESCRIBE_OPERATION = "describe"


class StateReconciler:
    """Maps remote lifecycle hook state onto ObservedState.

    Args:
        gateway: Remote gateway used for describe calls.
    """

    def __init__(self, gateway: RemoteGateway) -> None:
        self._gateway = gateway

    def describe(self, identity: str) -> ObservedState:
        """Read the current state of a lifecycle hook.

        Args:
            identity: Identity assigned at creation.

        Returns:
            Full observed field set, including control plane computed fields.

        Raises:
            HookNotFoundError: The identity does not exist (terminal deleted state).
            FatalOperationError: Any other failure, including malformed responses.
        """
        if not identity:
            raise FatalOperationError(
                "cannot describe a lifecycle hook without an identity",
                operation=DESCRIBE_OPERATION,
            )

        try:
            fields = self._gateway.describe(identity)
        except Exception as e:
            # Absence is signalled with ResourceNotFoundError; every other failure is fatal
            if is_not_found(e):
                logger.info("Lifecycle hook not found", extra={"identity": identity})
                raise HookNotFoundError(
                    "lifecycle hook does not exist",
                    operation=DESCRIBE_OPERATION,
                    identity=identity,
                    cause=e,
                ) from e
            raise FatalOperationError(
                "describe call failed",
                operation=DESCRIBE_OPERATION,
                identity=identity,
                cause=e,
            ) from e

        # Some control planes omit the id in the describe body
        payload = {"lifecycleHookId": identity, **fields}

        try:
            observed = ObservedState.model_validate(payload)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise FatalOperationError(
                f"malformed describe response: {errors}",
                operation=DESCRIBE_OPERATION,
                identity=identity,
                cause=e,
            ) from e

        if observed.lifecycle_hook_id != identity:
            raise FatalOperationError(
                f"describe returned a different hook: {observed.lifecycle_hook_id}",
                operation=DESCRIBE_OPERATION,
                identity=identity,
            )

        logger.debug(
            "Lifecycle hook described",
            extra={"identity": identity, "hook_name": observed.name},
        )
        return observed
