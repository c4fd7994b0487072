"""Error taxonomy for lifecycle hook reconciliation.

Remote failures arrive as azure-core exceptions raised by the gateway:

- Transient: throttling (HTTP 429 or a throttling error code). Retried
  locally by RetryExecutor, never surfaced raw.
- NotFound: ResourceNotFoundError. Terminal "deleted" signal for the read
  and delete paths, fatal everywhere else.
- Everything else is fatal and propagates immediately.

Errors raised by this package all derive from HookOperatorError and carry
the operation name, the identity and the underlying cause.
"""

from __future__ import annotations

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

# Error codes the control plane uses for rate limiting
THROTTLING_ERROR_CODES: frozenset[str] = frozenset(
    {
        "Throttling",
        "Throttling.User",
        "Throttling.Api",
    }
)

HTTP_TOO_MANY_REQUESTS = 429


class HookOperatorError(Exception):
    """Base class for reconciliation errors."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        identity: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.identity = identity or None
        self.cause = cause
        details = f"{operation}"
        if self.identity:
            details += f" [{self.identity}]"
        full = f"{details}: {message}"
        if cause is not None:
            full += f" (caused by {type(cause).__name__}: {cause})"
        super().__init__(full)


class HookNotFoundError(HookOperatorError):
    """The control plane reports that the identity does not exist.

    Read and delete treat this as the terminal deleted state.
    """

    pass


class FatalOperationError(HookOperatorError):
    """Validation, permission, malformed-request or unexpected absence errors."""

    pass


class OperationTimeoutError(HookOperatorError):
    """A retry or convergence budget was exhausted.

    The last underlying error (if any) is kept in ``last_error``.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        identity: str | None = None,
        timeout_seconds: float,
        last_error: BaseException | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.last_error = last_error
        super().__init__(message, operation=operation, identity=identity, cause=last_error)


class PartialSuccessError(HookOperatorError):
    """The mutation succeeded but the follow-up read did not confirm it.

    The remote object may exist in an unconfirmed state.
    """

    pass


def error_code(error: BaseException) -> str | None:
    """Extract the control plane error code from an azure-core error, if any."""
    if not isinstance(error, HttpResponseError):
        return None
    odata_error = getattr(error, "error", None)
    if odata_error is not None and getattr(odata_error, "code", None):
        return str(odata_error.code)
    return None


def is_transient(error: BaseException) -> bool:
    """Check whether an error matches a known transient (throttling) signature."""
    if isinstance(error, ResourceNotFoundError):
        return False
    if not isinstance(error, HttpResponseError):
        return False
    if error.status_code == HTTP_TOO_MANY_REQUESTS:
        return True
    return error_code(error) in THROTTLING_ERROR_CODES


def is_not_found(error: BaseException) -> bool:
    """Check whether an error is the control plane's not-found signal."""
    return isinstance(error, ResourceNotFoundError)
