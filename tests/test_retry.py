"""Unit tests for retry.py - Conflict retry with backoff."""

from unittest.mock import AsyncMock, patch

import pytest

from errors import ConflictError, StatusError
from retry import (
    DEFAULT_BACKOFF,
    DEFAULT_RETRY,
    Backoff,
    is_conflict,
    on_error,
    retry_on_conflict,
)


class TestBackoff:
    """Tests for Backoff delay computation."""

    def test_default_retry_values(self):
        assert DEFAULT_RETRY.steps == 5
        assert DEFAULT_RETRY.duration == 0.01
        assert DEFAULT_RETRY.factor == 1.0
        assert DEFAULT_RETRY.jitter == 0.1

    def test_default_backoff_values(self):
        assert DEFAULT_BACKOFF.steps == 4
        assert DEFAULT_BACKOFF.factor == 5.0

    def test_delays_without_jitter(self):
        backoff = Backoff(steps=4, duration=1.0, factor=2.0, jitter=0)
        assert list(backoff.delays()) == [1.0, 2.0, 4.0]

    def test_delays_capped(self):
        backoff = Backoff(steps=5, duration=1.0, factor=3.0, jitter=0, cap=5.0)
        assert list(backoff.delays()) == [1.0, 3.0, 5.0, 5.0]

    def test_delays_with_jitter_stay_in_range(self):
        backoff = Backoff(steps=20, duration=1.0, factor=1.0, jitter=0.5)
        for delay in backoff.delays():
            assert 1.0 <= delay <= 1.5

    def test_single_step_has_no_delays(self):
        assert list(Backoff(steps=1).delays()) == []

    def test_is_conflict(self):
        assert is_conflict(ConflictError("conflict")) is True
        assert is_conflict(StatusError("other")) is False
        assert is_conflict(ValueError("other")) is False


@pytest.mark.asyncio
class TestRetryOnConflict:
    """Tests for retry_on_conflict and on_error."""

    @pytest.fixture
    def backoff(self):
        return Backoff(steps=3, duration=0, factor=1.0, jitter=0)

    async def test_success_first_attempt(self, backoff):
        fn = AsyncMock(return_value="done")

        result = await retry_on_conflict(backoff, fn)

        assert result == "done"
        fn.assert_awaited_once()

    async def test_retries_until_success(self, backoff):
        fn = AsyncMock(side_effect=[ConflictError("c1"), ConflictError("c2"), "ok"])

        result = await retry_on_conflict(backoff, fn)

        assert result == "ok"
        assert fn.await_count == 3

    async def test_raises_last_conflict_when_exhausted(self, backoff):
        fn = AsyncMock(
            side_effect=[ConflictError("c1"), ConflictError("c2"), ConflictError("c3")]
        )

        with pytest.raises(ConflictError) as exc_info:
            await retry_on_conflict(backoff, fn)

        assert str(exc_info.value) == "c3"
        assert fn.await_count == 3

    async def test_other_errors_not_retried(self, backoff):
        fn = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(ValueError):
            await retry_on_conflict(backoff, fn)

        fn.assert_awaited_once()

    async def test_sleeps_between_attempts(self):
        backoff = Backoff(steps=3, duration=0.5, factor=2.0, jitter=0)
        fn = AsyncMock(side_effect=[ConflictError("c1"), ConflictError("c2"), "ok"])

        with patch("retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await retry_on_conflict(backoff, fn)

        assert [call.args[0] for call in mock_sleep.await_args_list] == [0.5, 1.0]

    async def test_on_error_custom_predicate(self, backoff):
        fn = AsyncMock(side_effect=[TimeoutError("slow"), "ok"])

        result = await on_error(
            backoff, lambda e: isinstance(e, TimeoutError), fn
        )

        assert result == "ok"
        assert fn.await_count == 2
