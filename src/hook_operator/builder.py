"""Request payload construction.

Pure transformations from desired state to vendor-agnostic request payloads.
Enum membership and ranges are validated by the models, not here.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from .models import IMMUTABLE_FIELDS, MUTABLE_FIELDS, LifecycleHookSpec

logger = logging.getLogger(__name__)

# Model field name -> request payload key
REQUEST_KEYS: dict[str, str] = {
    "scaling_group_id": "scalingGroupId",
    "name": "lifecycleHookName",
    "lifecycle_transition": "lifecycleTransition",
    "heartbeat_timeout": "heartbeatTimeout",
    "default_result": "defaultResult",
    "notification_arn": "notificationArn",
    "notification_metadata": "notificationMetadata",
}

# Optional fields sent on create only when explicitly set
_OPTIONAL_CREATE_FIELDS: tuple[str, ...] = (
    "name",
    "heartbeat_timeout",
    "default_result",
    "notification_arn",
    "notification_metadata",
)


def _wire_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _is_set(value: Any) -> bool:
    """Whether an optional value should be sent rather than left to the control plane."""
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, bool):
        return True
    if isinstance(value, int | float):
        return value > 0
    return True


def build_create_request(spec: LifecycleHookSpec) -> dict[str, Any]:
    """Build a create payload from desired state.

    The scaling group and transition are always sent. Optional fields are
    omitted when unset, empty or non-positive so that the control plane
    applies its own defaults.

    Args:
        spec: Validated desired state.

    Returns:
        Request payload keyed by REQUEST_KEYS.
    """
    request: dict[str, Any] = {
        REQUEST_KEYS["scaling_group_id"]: spec.scaling_group_id,
        REQUEST_KEYS["lifecycle_transition"]: _wire_value(spec.lifecycle_transition),
    }

    for field_name in _OPTIONAL_CREATE_FIELDS:
        value = getattr(spec, field_name)
        if _is_set(value):
            request[REQUEST_KEYS[field_name]] = _wire_value(value)

    return request


def changed_fields(desired: LifecycleHookSpec, last_known: LifecycleHookSpec) -> list[str]:
    """List mutable fields whose desired value differs from the last-known value.

    A ``None`` desired value leaves the field to the control plane and is
    never a change. Immutable fields are never reported.
    """
    changed = []
    for field_name in MUTABLE_FIELDS:
        wanted = getattr(desired, field_name)
        if wanted is None:
            continue
        if wanted != getattr(last_known, field_name):
            changed.append(field_name)
    return changed


def build_update_request(
    desired: LifecycleHookSpec,
    last_known: LifecycleHookSpec,
) -> dict[str, Any]:
    """Build a minimal partial-update payload.

    Only mutable fields that differ from the last-known state are included.
    An empty string is sent as-is so that a free-form attribute can be
    cleared. Changed immutable fields are logged and dropped.

    Args:
        desired: Validated desired state.
        last_known: Field set from the most recent read.

    Returns:
        Partial payload; empty when nothing needs changing.
    """
    ignored = [
        name
        for name in IMMUTABLE_FIELDS
        if getattr(desired, name) is not None
        and getattr(desired, name) != getattr(last_known, name)
    ]
    if ignored:
        logger.warning(
            "Immutable fields changed, excluded from update",
            extra={"fields": ignored},
        )

    return {
        REQUEST_KEYS[name]: _wire_value(getattr(desired, name))
        for name in changed_fields(desired, last_known)
    }
