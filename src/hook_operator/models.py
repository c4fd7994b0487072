"""Pydantic models for lifecycle hook state with validation.

These models provide:
1. Type-safe parsing of desired state (YAML spec files, API callers)
2. Validation at the boundary (enum membership, heartbeat range)
3. The persisted state record carried between invocations
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

from .config import (
    DEFAULT_HEARTBEAT_TIMEOUT_SECONDS,
    MAX_HEARTBEAT_TIMEOUT_SECONDS,
    MIN_HEARTBEAT_TIMEOUT_SECONDS,
)

# Fields that can only be set at creation time
IMMUTABLE_FIELDS: tuple[str, ...] = (
    "scaling_group_id",
    "name",
    "lifecycle_transition",
)

# Fields that may be changed in place with a partial update
MUTABLE_FIELDS: tuple[str, ...] = (
    "heartbeat_timeout",
    "default_result",
    "notification_arn",
    "notification_metadata",
)


class LifecycleTransition(str, Enum):
    """Scaling activity the hook is attached to."""

    SCALE_OUT = "SCALE_OUT"
    SCALE_IN = "SCALE_IN"


class DefaultResult(str, Enum):
    """Action taken when the heartbeat timeout elapses."""

    CONTINUE = "CONTINUE"
    ABANDON = "ABANDON"


class HookStatus(str, Enum):
    """Lifecycle controller states."""

    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETING = "deleting"
    ERROR = "error"


def _check_heartbeat_timeout(v: int) -> int:
    if not MIN_HEARTBEAT_TIMEOUT_SECONDS <= v <= MAX_HEARTBEAT_TIMEOUT_SECONDS:
        raise ValueError(
            f"heartbeatTimeout must be between {MIN_HEARTBEAT_TIMEOUT_SECONDS} "
            f"and {MAX_HEARTBEAT_TIMEOUT_SECONDS} seconds"
        )
    return v


# =============================================================================
# Desired State
# =============================================================================


class LifecycleHookSpec(BaseModel):
    """Desired state of a lifecycle hook.

    ``None`` on an optional field means "let the control plane assign it".
    An empty string on a free-form attribute means "explicitly cleared".
    """

    model_config = {"extra": "forbid", "populate_by_name": True}

    scaling_group_id: Annotated[str, Field(min_length=1, alias="scalingGroupId")]
    name: str | None = None
    lifecycle_transition: LifecycleTransition = Field(alias="lifecycleTransition")
    heartbeat_timeout: int | None = Field(None, alias="heartbeatTimeout")
    default_result: DefaultResult | None = Field(None, alias="defaultResult")
    notification_arn: str | None = Field(None, alias="notificationArn")
    notification_metadata: str | None = Field(None, alias="notificationMetadata")

    @field_validator("heartbeat_timeout")
    @classmethod
    def validate_heartbeat_timeout(cls, v: int | None) -> int | None:
        if v is None:
            return v
        return _check_heartbeat_timeout(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        # An empty name is the same as leaving it to the control plane
        if v is not None and not v.strip():
            return None
        return v


# =============================================================================
# Observed State
# =============================================================================


class ObservedState(BaseModel):
    """Lifecycle hook as reported by the control plane.

    Always sourced fresh from a describe call. Computed fields (assigned
    name, default heartbeat, notification attributes) are always populated.
    Field constraints match LifecycleHookSpec so that ``to_spec`` cannot fail
    and the projected spec can be persisted and loaded back.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    lifecycle_hook_id: Annotated[str, Field(min_length=1, alias="lifecycleHookId")]
    scaling_group_id: Annotated[str, Field(min_length=1, alias="scalingGroupId")]
    name: str = Field(alias="lifecycleHookName")
    lifecycle_transition: LifecycleTransition = Field(alias="lifecycleTransition")
    heartbeat_timeout: int = Field(DEFAULT_HEARTBEAT_TIMEOUT_SECONDS, alias="heartbeatTimeout")
    default_result: DefaultResult = Field(DefaultResult.CONTINUE, alias="defaultResult")
    notification_arn: str = Field("", alias="notificationArn")
    notification_metadata: str = Field("", alias="notificationMetadata")

    @field_validator("notification_arn", "notification_metadata", mode="before")
    @classmethod
    def none_as_empty(cls, v: str | None) -> str:
        return "" if v is None else v

    @field_validator("heartbeat_timeout")
    @classmethod
    def validate_heartbeat_timeout(cls, v: int) -> int:
        return _check_heartbeat_timeout(v)

    def to_spec(self) -> LifecycleHookSpec:
        """Project the observed fields onto the desired-state shape."""
        return LifecycleHookSpec(
            scaling_group_id=self.scaling_group_id,
            name=self.name,
            lifecycle_transition=self.lifecycle_transition,
            heartbeat_timeout=self.heartbeat_timeout,
            default_result=self.default_result,
            notification_arn=self.notification_arn,
            notification_metadata=self.notification_metadata,
        )


# =============================================================================
# Persisted State Record
# =============================================================================


class HookRecord(BaseModel):
    """State carried between invocations for one lifecycle hook.

    ``identity`` is empty until a create succeeds and is cleared when the
    hook is deleted or discovered to be gone. ``spec`` holds the last-known
    field set as read back from the control plane.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    identity: str = ""
    status: HookStatus = HookStatus.ABSENT
    spec: LifecycleHookSpec | None = None
    last_error: str | None = Field(None, alias="lastError")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="updatedAt")

    @property
    def exists(self) -> bool:
        """Whether an identity has been assigned."""
        return bool(self.identity)

    def immutable_changes(self, desired: LifecycleHookSpec) -> list[str]:
        """List immutable fields whose desired value differs from the last-known one.

        A ``None`` desired name is not a change: the control plane assigned it.
        """
        if self.spec is None:
            return []
        changed = []
        for field_name in IMMUTABLE_FIELDS:
            wanted = getattr(desired, field_name)
            if wanted is None:
                continue
            if wanted != getattr(self.spec, field_name):
                changed.append(field_name)
        return changed
