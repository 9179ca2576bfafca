"""
Unit tests for shared helpers: retry, circuit breaker and logging.
"""

from unittest.mock import AsyncMock, patch

import pytest

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, CircuitBreakerState
from shared.logging import mask_email, mask_emails
from shared.retry import RetryConfig, RetryError, calculate_delay, retry_on_exception


class FakeClock:
    def __init__(self):
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


class TestRetry:
    """Test cases for retry_on_exception."""

    def test_exponential_delay_is_capped(self):
        """Test backoff growth and cap."""
        config = RetryConfig(base_delay=0.5, max_delay=1.5, jitter=False)

        assert [calculate_delay(attempt, config) for attempt in (1, 2, 3)] == [0.5, 1.0, 1.5]

    def test_linear_delay(self):
        """Test linear backoff."""
        config = RetryConfig(base_delay=0.1, jitter=False, backoff_strategy="linear")

        assert calculate_delay(3, config) == pytest.approx(0.3)

    @patch("shared.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_non_matching_error_is_not_retried(self, mock_sleep):
        """Test that only the listed exceptions are retried."""
        calls = []

        @retry_on_exception((OSError,), RetryConfig(max_attempts=3))
        async def read():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await read()

        assert len(calls) == 1
        mock_sleep.assert_not_awaited()

    @patch("shared.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_exhausted_attempts_raise_retry_error(self, mock_sleep):
        """Test RetryError after the last attempt."""
        @retry_on_exception((OSError,), RetryConfig(max_attempts=2))
        async def read():
            raise OSError("reset")

        with pytest.raises(RetryError) as exc_info:
            await read()

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, OSError)
        assert mock_sleep.await_count == 1


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker(failure_threshold=2, recovery_timeout=10, name="test", clock=clock)

    async def _fail(self, breaker):
        with pytest.raises(OSError):
            await breaker.call(AsyncMock(side_effect=OSError("down")))

    async def test_opens_after_threshold(self, breaker):
        """Test that repeated failures open the circuit."""
        await self._fail(breaker)
        assert breaker.state == CircuitBreakerState.CLOSED

        await self._fail(breaker)
        assert breaker.is_open() is True

        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(AsyncMock())

    async def test_half_open_success_closes(self, breaker, clock):
        """Test recovery after the timeout."""
        await self._fail(breaker)
        await self._fail(breaker)
        clock.value = 10

        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"
        assert breaker.state == CircuitBreakerState.CLOSED
        assert breaker.get_state()["failure_count"] == 0

    async def test_half_open_failure_reopens(self, breaker, clock):
        """Test that a failed probe reopens immediately."""
        await self._fail(breaker)
        await self._fail(breaker)
        clock.value = 10

        await self._fail(breaker)

        assert breaker.is_open() is True


class TestLogging:
    """Test cases for logging processors."""

    @pytest.mark.parametrize("value,expected", [
        ("castro.massimo@yahoo.com", "c***@yahoo.com"),
        ("not-an-email", "***"),
        ("@nolocal.it", "***"),
    ])
    def test_mask_email(self, value, expected):
        """Test email masking."""
        assert mask_email(value) == expected

    def test_mask_emails_processor(self):
        """Test that only email fields are masked."""
        event = mask_emails(None, "info", {"event": "x", "email": "owner@trattoria.it", "profile_id": "t-1"})

        assert event["email"] == "o***@trattoria.it"
        assert event["profile_id"] == "t-1"
