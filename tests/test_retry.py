"""
Tests for the bounded retry policy.
"""
import pytest

from desci_sync.services.errors import RPCError, TransientRPCError
from desci_sync.services.retry import RetryPolicy, RetryResult


class Recorder:
    """Fake sleep that remembers requested delays"""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def flaky(failures, value="ok", error=TransientRPCError):
    calls = {'n': 0}

    async def fn():
        calls['n'] += 1
        if calls['n'] <= failures:
            raise error(f"failure {calls['n']}")
        return value

    fn.calls = calls
    return fn


class TestSchedule:

    def test_exponential_growth(self):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5, multiplier=2.0, max_delay=30.0)
        assert policy.schedule() == [0.5, 1.0, 2.0, 4.0]

    def test_capped_at_max_delay(self):
        policy = RetryPolicy(max_attempts=6, base_delay=1.0, multiplier=10.0, max_delay=5.0)
        assert policy.schedule() == [1.0, 5.0, 5.0, 5.0, 5.0]

    def test_single_attempt_never_sleeps(self):
        assert RetryPolicy(max_attempts=1).schedule() == []


class TestRun:

    @pytest.mark.asyncio
    async def test_first_try_success(self):
        sleep = Recorder()
        result = await RetryPolicy().run(flaky(0), sleep=sleep)

        assert result == RetryResult(ok=True, value="ok", attempts=1)
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        sleep = Recorder()
        policy = RetryPolicy(max_attempts=5, base_delay=0.5)
        fn = flaky(2)

        result = await policy.run(fn, sleep=sleep)

        assert result.ok
        assert result.value == "ok"
        assert result.attempts == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self):
        sleep = Recorder()
        policy = RetryPolicy(max_attempts=3, base_delay=0.1)
        fn = flaky(10)

        result = await policy.run(fn, sleep=sleep)

        assert not result.ok
        assert isinstance(result.error, TransientRPCError)
        assert result.attempts == 3
        assert fn.calls['n'] == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        sleep = Recorder()
        fn = flaky(10, error=RPCError)

        result = await RetryPolicy(max_attempts=5).run(fn, sleep=sleep)

        assert not result.ok
        assert isinstance(result.error, RPCError)
        assert result.attempts == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unwrap(self):
        ok = await RetryPolicy().run(flaky(0, value=42), sleep=Recorder())
        assert ok.unwrap() == 42

        failed = await RetryPolicy(max_attempts=1).run(flaky(5), sleep=Recorder())
        with pytest.raises(TransientRPCError):
            failed.unwrap()
