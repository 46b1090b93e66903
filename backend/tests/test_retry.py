"""
VoiceBrief Backend: Backoff Retrier Unit Tests
==============================================

What we test:
    ✅ Success on the first attempt makes exactly one call, no sleeps
    ✅ k rate-limited failures then success → k+1 calls, delays 1s, 2s, ...
    ✅ Non-rate-limit failures propagate unchanged after one call
    ✅ Exhausted budget raises the last rate-limit error
    ✅ Lambda-wrapped adapter calls (the VoiceService call shape)
    ✅ Per-call max_attempts override
"""

import pytest

from voicebrief.exceptions import (
    ProviderError,
    ProviderErrorKind,
    RateLimitedError,
    StructuralError,
    ValidationError,
)
from voicebrief.services.retry import BackoffRetrier, is_rate_limited


class FlakyOperation:
    """Fails with the queued errors in order, then returns `result`."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class FlakyProvider:
    """
    Adapter-shaped stub with a plain `async def` method, called the way
    VoiceService calls adapters: `retry(lambda: provider.call(arg))`.
    """

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = []

    async def call(self, arg):
        self.calls.append(arg)
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryPredicate:

    def test_rate_limited_error_is_retryable(self):
        assert is_rate_limited(RateLimitedError())

    def test_other_provider_kinds_are_not_retryable(self):
        for kind in (
            ProviderErrorKind.UNAVAILABLE,
            ProviderErrorKind.REJECTED,
            ProviderErrorKind.UNKNOWN,
        ):
            assert not is_rate_limited(ProviderError(kind=kind))

    def test_non_provider_errors_are_not_retryable(self):
        assert not is_rate_limited(StructuralError())
        assert not is_rate_limited(ValueError("429 Too Many Requests"))


class TestBackoffRetrier:

    def test_delay_doubles_per_attempt(self):
        retrier = BackoffRetrier(base_delay=1.0)
        assert [retrier.delay_for(n) for n in range(3)] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_success_first_try(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        operation = FlakyOperation([], result="transcript")

        assert await retrier.retry(operation) == "transcript"
        assert operation.calls == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        operation = FlakyOperation([RateLimitedError(), RateLimitedError()], result="done")

        assert await retrier.retry(operation) == "done"
        assert operation.calls == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_rate_limit_error_is_not_retried(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        original = ProviderError("Summarization failed: 401", kind=ProviderErrorKind.REJECTED)
        operation = FlakyOperation([original])

        with pytest.raises(ProviderError) as exc_info:
            await retrier.retry(operation)

        assert exc_info.value is original
        assert operation.calls == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_validation_error_is_not_retried(self, sleep_recorder):
        sleep, _ = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, sleep=sleep)
        operation = FlakyOperation([ValidationError("Transcript cannot be empty")])

        with pytest.raises(ValidationError):
            await retrier.retry(operation)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        errors = [RateLimitedError(f"attempt {n}") for n in range(3)]
        operation = FlakyOperation(list(errors))

        with pytest.raises(RateLimitedError) as exc_info:
            await retrier.retry(operation)

        assert exc_info.value is errors[-1]
        assert operation.calls == 3
        # No sleep after the final attempt
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_lambda_operation_is_awaited(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        provider = FlakyProvider([], result="transcript")

        result = await retrier.retry(lambda: provider.call("audio.webm"))

        assert result == "transcript"
        assert provider.calls == ["audio.webm"]
        assert delays == []

    @pytest.mark.asyncio
    async def test_lambda_operation_retries_rate_limits(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        provider = FlakyProvider([RateLimitedError(), RateLimitedError()], result="summary")

        result = await retrier.retry(lambda: provider.call("transcript"))

        assert result == "summary"
        assert len(provider.calls) == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_lambda_operation_exhaustion(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        last = RateLimitedError("third")
        provider = FlakyProvider([RateLimitedError("first"), RateLimitedError("second"), last])

        with pytest.raises(RateLimitedError) as exc_info:
            await retrier.retry(lambda: provider.call("transcript"))

        assert exc_info.value is last
        assert len(provider.calls) == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_lambda_operation_non_transient_error(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        provider = FlakyProvider([StructuralError("Invalid summary format: missing bullets")])

        with pytest.raises(StructuralError):
            await retrier.retry(lambda: provider.call("transcript"))

        assert len(provider.calls) == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_per_call_max_attempts(self, sleep_recorder):
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(max_attempts=3, base_delay=1.0, sleep=sleep)
        operation = FlakyOperation([RateLimitedError()] * 5)

        with pytest.raises(RateLimitedError):
            await retrier.retry(operation, max_attempts=5)

        assert operation.calls == 5
        assert delays == [1.0, 2.0, 4.0, 8.0]
