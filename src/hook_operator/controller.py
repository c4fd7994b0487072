"""Lifecycle controller for a single lifecycle hook.

State machine:

    ABSENT -> CREATING -> PRESENT -> UPDATING -> PRESENT -> DELETING -> ABSENT

Any unrecovered failure leaves the record in ERROR with the identity kept
when one is known, so that the next invocation can re-read ground truth.
Every mutation is followed by a read; the mutation response is never
trusted as final state.

Invocations against the same identity must be serialized by the caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from azure.core.exceptions import AzureError

from .builder import build_create_request, build_update_request, changed_fields
from .config import Config
from .errors import (
    FatalOperationError,
    HookNotFoundError,
    HookOperatorError,
    PartialSuccessError,
    is_not_found,
)
from .gateway import RemoteGateway
from .models import HookRecord, HookStatus, LifecycleHookSpec
from .reconciler import StateReconciler
from .retry import RetryExecutor
from .waiter import ConvergenceWaiter, TargetCondition

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    """What a reconciliation pass did."""

    NOOP = "noop"
    CREATE = "create"
    UPDATE = "update"
    REFRESH = "refresh"
    DELETE = "delete"
    IMPORT = "import"


@dataclass
class ReconcileResult:
    """Result of a single reconciliation pass."""

    action: ReconcileAction = ReconcileAction.NOOP
    identity: str = ""
    status: HookStatus = HookStatus.ABSENT
    changed_fields: list[str] = field(default_factory=list)
    ignored_immutable_fields: list[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if reconciliation succeeded."""
        return self.error is None


class LifecycleController:
    """Drives one lifecycle hook through create, read, update and delete.

    The controller owns its HookRecord exclusively. Collaborators are built
    from the config unless injected.

    Args:
        gateway: Remote gateway for the control plane.
        config: Timeouts and backoff settings.
        record: Persisted state from a previous invocation.
        retry_executor: Overrides the create retry executor.
        waiter: Overrides the convergence waiter.
        clock: Monotonic clock shared by default collaborators.
        sleep: Sleep function shared by default collaborators.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        config: Config | None = None,
        *,
        record: HookRecord | None = None,
        retry_executor: RetryExecutor | None = None,
        waiter: ConvergenceWaiter | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or Config()
        self._gateway = gateway
        self._record = record.model_copy(deep=True) if record is not None else HookRecord()
        self._reconciler = StateReconciler(gateway)
        self._retry = retry_executor or RetryExecutor(
            backoff_base_seconds=self._config.retry_backoff_base_seconds,
            backoff_max_seconds=self._config.retry_backoff_max_seconds,
            clock=clock,
            sleep=sleep,
        )
        self._waiter = waiter or ConvergenceWaiter(
            self._reconciler,
            poll_interval_seconds=self._config.poll_interval_seconds,
            clock=clock,
            sleep=sleep,
        )

    @property
    def record(self) -> HookRecord:
        """Current state record."""
        return self._record

    @property
    def identity(self) -> str:
        return self._record.identity

    @property
    def status(self) -> HookStatus:
        return self._record.status

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, desired: LifecycleHookSpec) -> HookRecord:
        """Create the hook, then read it back to populate computed fields.

        Raises:
            FatalOperationError: The hook already exists or the call failed.
            OperationTimeoutError: Throttling outlasted the create budget.
            PartialSuccessError: Created, but the follow-up read failed.
        """
        if self._record.exists:
            raise FatalOperationError(
                "lifecycle hook already exists",
                operation="create",
                identity=self._record.identity,
            )

        self._transition(HookStatus.CREATING)
        request = build_create_request(desired)

        try:
            identity, _ = self._retry.execute(
                lambda: self._gateway.create(request),
                self._config.create_timeout_seconds,
                operation_name="create",
            )
        except HookOperatorError as e:
            self._fail(e)
            raise
        except AzureError as e:
            error = FatalOperationError("create call failed", operation="create", cause=e)
            self._fail(error)
            raise error from e

        self._record.identity = identity
        logger.info(
            "Lifecycle hook created",
            extra={"identity": identity, "scaling_group_id": desired.scaling_group_id},
        )
        self._refresh_after("create")
        return self._record

    def read(self) -> HookRecord:
        """Refresh the record from the control plane.

        A hook that no longer exists is not an error: the identity is
        cleared and the record becomes ABSENT.

        Raises:
            FatalOperationError: The describe call failed for another reason.
        """
        if not self._record.exists:
            self._transition(HookStatus.ABSENT)
            return self._record

        identity = self._record.identity
        try:
            observed = self._reconciler.describe(identity)
        except HookNotFoundError:
            logger.warning(
                "Lifecycle hook deleted outside of this controller, clearing identity",
                extra={"identity": identity},
            )
            self._mark_deleted()
            return self._record
        except HookOperatorError as e:
            self._fail(e)
            raise

        self._record.spec = observed.to_spec()
        self._transition(HookStatus.PRESENT)
        return self._record

    def update(self, desired: LifecycleHookSpec) -> HookRecord:
        """Send changed mutable fields in a single update call, then read back.

        Nothing is sent when no mutable field changed. A hook that vanished
        is a fatal error here, unlike delete.

        Raises:
            FatalOperationError: No identity, vanished hook, or failed call.
            PartialSuccessError: Updated, but the follow-up read failed.
        """
        if not self._record.exists:
            raise FatalOperationError("no lifecycle hook to update", operation="update")

        identity = self._record.identity
        if self._record.spec is None:
            self._refresh_last_known("update")
        assert self._record.spec is not None

        request = build_update_request(desired, self._record.spec)
        if not request:
            logger.info("No mutable field changed, update skipped", extra={"identity": identity})
            return self._record

        self._transition(HookStatus.UPDATING)
        try:
            self._gateway.update(identity, request)
        except AzureError as e:
            reason = "lifecycle hook no longer exists" if is_not_found(e) else "update call failed"
            error = FatalOperationError(reason, operation="update", identity=identity, cause=e)
            self._fail(error)
            raise error from e

        logger.info(
            "Lifecycle hook updated",
            extra={"identity": identity, "fields": sorted(request)},
        )
        self._refresh_after("update")
        return self._record

    def delete(self) -> HookRecord:
        """Delete the hook and wait until the control plane confirms it is gone.

        Deleting a hook that is already gone succeeds.

        Raises:
            FatalOperationError: The delete call failed.
            OperationTimeoutError: Deletion was not confirmed in time.
        """
        if not self._record.exists:
            logger.info("Lifecycle hook already absent, nothing to delete")
            self._transition(HookStatus.ABSENT)
            return self._record

        identity = self._record.identity
        self._transition(HookStatus.DELETING)

        try:
            self._gateway.delete(identity)
        except AzureError as e:
            if is_not_found(e):
                logger.info("Lifecycle hook already deleted", extra={"identity": identity})
                self._mark_deleted()
                return self._record
            error = FatalOperationError(
                "delete call failed", operation="delete", identity=identity, cause=e
            )
            self._fail(error)
            raise error from e

        try:
            self._waiter.wait_until(
                identity,
                TargetCondition.DELETED,
                self._config.delete_timeout_seconds,
            )
        except HookOperatorError as e:
            self._fail(e)
            raise

        logger.info("Lifecycle hook deleted", extra={"identity": identity})
        self._mark_deleted()
        return self._record

    def apply(self, desired: LifecycleHookSpec) -> ReconcileResult:
        """Converge the hook on ``desired`` and report what happened.

        Existing hooks are read first (drift detection). A hook found to be
        gone is created again. Errors are captured in the result.
        """
        result = ReconcileResult()

        try:
            if self._record.exists:
                self.read()

            if not self._record.exists:
                result.action = ReconcileAction.CREATE
                self.create(desired)
            else:
                result.ignored_immutable_fields = self._record.immutable_changes(desired)
                assert self._record.spec is not None
                changes = changed_fields(desired, self._record.spec)
                if changes:
                    result.action = ReconcileAction.UPDATE
                    result.changed_fields = changes
                    self.update(desired)
        except HookOperatorError as e:
            result.error = e

        return self._finish(result)

    def refresh(self) -> ReconcileResult:
        """Read-only reconciliation pass."""
        result = ReconcileResult(action=ReconcileAction.REFRESH)
        try:
            self.read()
        except HookOperatorError as e:
            result.error = e
        return self._finish(result)

    def destroy(self) -> ReconcileResult:
        """Delete pass that captures errors in the result."""
        result = ReconcileResult(action=ReconcileAction.DELETE, identity=self._record.identity)
        try:
            self.delete()
        except HookOperatorError as e:
            result.error = e
        return self._finish(result)

    def import_hook(self, identity: str) -> ReconcileResult:
        """Adopt an existing hook by identity and read its fields.

        Only an empty record can adopt a hook. An identity the control plane
        does not know leaves the record ABSENT and is reported as an error.
        """
        result = ReconcileResult(action=ReconcileAction.IMPORT, identity=identity)
        try:
            if self._record.exists:
                raise FatalOperationError(
                    "state already tracks a lifecycle hook",
                    operation="import",
                    identity=self._record.identity,
                )
            if not identity:
                raise FatalOperationError("an identity is required", operation="import")

            self._record.identity = identity
            self._record.spec = None
            self.read()
            if not self._record.exists:
                result.error = HookNotFoundError(
                    "lifecycle hook does not exist",
                    operation="import",
                    identity=identity,
                )
        except HookOperatorError as e:
            result.error = e
        return self._finish(result)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _refresh_last_known(self, operation: str) -> None:
        identity = self._record.identity
        try:
            observed = self._reconciler.describe(identity)
        except HookNotFoundError as e:
            error = FatalOperationError(
                "lifecycle hook no longer exists",
                operation=operation,
                identity=identity,
                cause=e,
            )
            self._fail(error)
            raise error from e
        except HookOperatorError as e:
            self._fail(e)
            raise
        self._record.spec = observed.to_spec()

    def _refresh_after(self, operation: str) -> None:
        identity = self._record.identity
        try:
            observed = self._reconciler.describe(identity)
        except HookOperatorError as e:
            error = PartialSuccessError(
                f"{operation} succeeded but the follow-up read failed",
                operation=operation,
                identity=identity,
                cause=e,
            )
            self._fail(error)
            raise error from e

        self._record.spec = observed.to_spec()
        self._transition(HookStatus.PRESENT)

    def _mark_deleted(self) -> None:
        self._record.identity = ""
        self._record.spec = None
        self._transition(HookStatus.ABSENT)

    def _transition(self, status: HookStatus) -> None:
        previous = self._record.status
        self._record.status = status
        self._record.last_error = None
        self._record.updated_at = datetime.now(UTC)
        if previous != status:
            logger.info(
                "Lifecycle hook state changed",
                extra={
                    "identity": self._record.identity or None,
                    "from_status": previous.value,
                    "to_status": status.value,
                },
            )

    def _fail(self, error: Exception) -> None:
        previous = self._record.status
        self._record.status = HookStatus.ERROR
        self._record.last_error = str(error)
        self._record.updated_at = datetime.now(UTC)
        logger.error(
            "Lifecycle hook operation failed",
            extra={
                "identity": self._record.identity or None,
                "from_status": previous.value,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )

    def _finish(self, result: ReconcileResult) -> ReconcileResult:
        result.identity = self._record.identity or result.identity
        result.status = self._record.status
        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    def _log_result(self, result: ReconcileResult) -> None:
        """Log reconciliation result with structured data."""
        extra: dict[str, Any] = {
            "action": result.action.value,
            "identity": result.identity or None,
            "status": result.status.value,
            "duration_seconds": result.duration_seconds,
            "changed_fields": result.changed_fields,
        }
        if result.ignored_immutable_fields:
            extra["ignored_immutable_fields"] = result.ignored_immutable_fields

        if result.error is not None:
            extra["error"] = str(result.error)
            logger.error("Reconciliation failed", extra=extra)
        elif result.ignored_immutable_fields:
            logger.warning("Reconciliation: immutable fields differ (recreate required)", extra=extra)
        else:
            logger.info("Reconciliation result", extra=extra)
