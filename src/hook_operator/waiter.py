"""Polls remote state until an asynchronous transition completes."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum

from .config import DEFAULT_POLL_INTERVAL_SECONDS
from .errors import HookNotFoundError, HookOperatorError, OperationTimeoutError
from .reconciler import StateReconciler

logger = logging.getLogger(__name__)


class TargetCondition(str, Enum):
    """Remote conditions the waiter can converge on."""

    DELETED = "deleted"
    PRESENT = "present"


class ConvergenceWaiter:
    """Blocks until a hook reaches a target condition or the timeout elapses.

    Describe failures during polling are logged and polling continues; only
    the overall timeout is fatal.
    """

    def __init__(
        self,
        reconciler: StateReconciler,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._reconciler = reconciler
        self._poll_interval = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def wait_until(
        self,
        identity: str,
        condition: TargetCondition,
        timeout: float,
    ) -> None:
        """Poll until ``condition`` holds for ``identity``.

        Raises:
            OperationTimeoutError: The condition was not reached within ``timeout``.
        """
        operation = f"wait-{condition.value}"
        deadline = self._clock() + timeout
        last_error: HookOperatorError | None = None
        polls = 0

        while True:
            polls += 1
            try:
                self._reconciler.describe(identity)
                if condition is TargetCondition.PRESENT:
                    logger.info(
                        "Lifecycle hook present",
                        extra={"identity": identity, "polls": polls},
                    )
                    return
            except HookNotFoundError:
                if condition is TargetCondition.DELETED:
                    logger.info(
                        "Lifecycle hook deletion confirmed",
                        extra={"identity": identity, "polls": polls},
                    )
                    return
            except HookOperatorError as e:
                last_error = e
                logger.warning(
                    "Describe failed while waiting, continuing to poll",
                    extra={"identity": identity, "condition": condition.value, "error": str(e)},
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(self._poll_interval, remaining))

        raise OperationTimeoutError(
            f"lifecycle hook not {condition.value} after {timeout}s",
            operation=operation,
            identity=identity,
            timeout_seconds=timeout,
            last_error=last_error,
        )
