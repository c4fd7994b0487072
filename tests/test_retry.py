"""Tests for bounded-duration retry."""

from __future__ import annotations

import pytest
from control_plane_mock import FakeClock, fatal_error, not_found_error, throttling_error

from hook_operator.errors import OperationTimeoutError, is_transient
from hook_operator.retry import RetryExecutor


class _Operation:
    """Callable that raises the queued errors, then returns a value."""

    def __init__(self, clock: FakeClock, errors: list[Exception], duration: float = 0.0) -> None:
        self._clock = clock
        self._errors = list(errors)
        self._duration = duration
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        self._clock.advance(self._duration)
        if self._errors:
            raise self._errors.pop(0)
        return "ok"


class _AlwaysThrottled:
    def __init__(self, clock: FakeClock, duration: float) -> None:
        self._clock = clock
        self._duration = duration
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        self._clock.advance(self._duration)
        raise throttling_error()


@pytest.fixture
def executor(clock: FakeClock) -> RetryExecutor:
    return RetryExecutor(
        backoff_base_seconds=1.0,
        backoff_max_seconds=30.0,
        clock=clock.monotonic,
        sleep=clock.sleep,
    )


class TestErrorClassification:
    """Tests for transient error detection."""

    def test_throttling_code_is_transient(self) -> None:
        assert is_transient(throttling_error()) is True

    def test_http_429_is_transient(self) -> None:
        assert is_transient(throttling_error(status_code=429, code="TooManyRequests")) is True

    def test_user_throttling_code_is_transient(self) -> None:
        assert is_transient(throttling_error(code="Throttling.User")) is True

    def test_forbidden_is_fatal(self) -> None:
        assert is_transient(fatal_error()) is False

    def test_not_found_is_not_transient(self) -> None:
        assert is_transient(not_found_error("lh-1")) is False

    def test_non_http_error_is_fatal(self) -> None:
        assert is_transient(ValueError("boom")) is False


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    def test_success_first_attempt(self, executor: RetryExecutor, clock: FakeClock) -> None:
        """Test that a successful operation runs once with no delay."""
        operation = _Operation(clock, [])

        assert executor.execute(operation, 300) == "ok"
        assert operation.calls == 1
        assert clock.sleeps == []

    def test_retries_transient_then_succeeds(
        self, executor: RetryExecutor, clock: FakeClock
    ) -> None:
        """Test that throttling is retried until success."""
        operation = _Operation(clock, [throttling_error(), throttling_error()])

        assert executor.execute(operation, 300) == "ok"
        assert operation.calls == 3
        assert len(clock.sleeps) == 2

    def test_fatal_error_short_circuits(self, executor: RetryExecutor, clock: FakeClock) -> None:
        """Test that a non-throttling error is raised after exactly one attempt."""
        error = fatal_error()
        operation = _Operation(clock, [error])

        with pytest.raises(type(error)) as exc_info:
            executor.execute(operation, 300)

        assert exc_info.value is error
        assert operation.calls == 1
        assert clock.sleeps == []

    def test_fatal_after_transient_stops(self, executor: RetryExecutor, clock: FakeClock) -> None:
        """Test that a fatal error after throttling stops retrying."""
        operation = _Operation(clock, [throttling_error(), fatal_error(), throttling_error()])

        with pytest.raises(Exception) as exc_info:
            executor.execute(operation, 300)

        assert not isinstance(exc_info.value, OperationTimeoutError)
        assert operation.calls == 2

    @pytest.mark.parametrize("attempt_duration", [0.0, 0.5, 7.0, 45.0])
    def test_budget_respected(
        self, executor: RetryExecutor, clock: FakeClock, attempt_duration: float
    ) -> None:
        """Test that permanent throttling ends in a timeout within the budget."""
        max_duration = 60.0
        operation = _AlwaysThrottled(clock, attempt_duration)
        start = clock.monotonic()

        with pytest.raises(OperationTimeoutError) as exc_info:
            executor.execute(operation, max_duration, operation_name="create")

        elapsed = clock.monotonic() - start
        if attempt_duration:
            assert elapsed < max_duration + attempt_duration
        else:
            assert elapsed == pytest.approx(max_duration)
        assert operation.calls >= 1
        assert exc_info.value.operation == "create"
        assert exc_info.value.timeout_seconds == max_duration

    def test_timeout_preserves_last_error(
        self, executor: RetryExecutor, clock: FakeClock
    ) -> None:
        """Test that the timeout wraps the last transient error."""
        operation = _AlwaysThrottled(clock, 1.0)

        with pytest.raises(OperationTimeoutError) as exc_info:
            executor.execute(operation, 10)

        assert is_transient(exc_info.value.last_error)
        assert exc_info.value.__cause__ is exc_info.value.last_error

    def test_zero_budget_still_attempts_once(
        self, executor: RetryExecutor, clock: FakeClock
    ) -> None:
        """Test that at least one attempt always happens."""
        operation = _AlwaysThrottled(clock, 0.0)

        with pytest.raises(OperationTimeoutError):
            executor.execute(operation, 0)

        assert operation.calls == 1

    def test_backoff_grows_and_is_capped(self, clock: FakeClock) -> None:
        """Test exponential backoff with a ceiling."""
        executor = RetryExecutor(
            backoff_base_seconds=1.0,
            backoff_max_seconds=4.0,
            clock=clock.monotonic,
            sleep=clock.sleep,
        )

        assert 1.0 <= executor.backoff_for(1) <= 1.2
        assert 2.0 <= executor.backoff_for(2) <= 2.4
        assert 4.0 <= executor.backoff_for(3) <= 4.8
        assert 4.0 <= executor.backoff_for(10) <= 4.8

    def test_no_sleep_past_deadline(self, executor: RetryExecutor, clock: FakeClock) -> None:
        """Test that a delay never extends beyond the remaining budget."""
        operation = _AlwaysThrottled(clock, 0.0)

        with pytest.raises(OperationTimeoutError):
            executor.execute(operation, 5)

        assert clock.total_slept == pytest.approx(5.0)
