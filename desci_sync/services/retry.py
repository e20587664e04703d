"""
Bounded retry policy

Wraps an awaitable factory in exponential backoff and reports the outcome
as a RetryResult instead of raising, so the listener decides whether a
failure is worth a BACKOFF cycle or escalates to FAILED.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

from .errors import TransientRPCError

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    def unwrap(self) -> T:
        """Return the value or re-raise the final error"""
        if not self.ok:
            raise self.error
        return self.value


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts: total tries including the first one
    base_delay:   delay after the first failure (seconds)
    multiplier:   growth factor per failure
    max_delay:    cap on a single delay
    retry_on:     exception types considered transient
    """
    max_attempts: int = 5
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    retry_on: Tuple[Type[BaseException], ...] = (TransientRPCError,)

    def delay_for(self, failures: int) -> float:
        """Backoff delay after the given number of consecutive failures (>= 1)"""
        return min(self.base_delay * (self.multiplier ** (failures - 1)), self.max_delay)

    def schedule(self):
        """Delays that run() would sleep between attempts"""
        return [self.delay_for(n) for n in range(1, self.max_attempts)]

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        description: str = "call",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> RetryResult[T]:
        """
        Call fn until it succeeds, raises a non-retryable error, or the
        attempt budget is spent.

        Args:
            fn: Zero-arg coroutine factory (called once per attempt)
            description: Used in log lines
            sleep: Injected for tests

        Returns:
            RetryResult with ok=False and the last error on failure
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                value = await fn()
                if attempt > 1:
                    logger.info(f"{description} succeeded on attempt {attempt}")
                return RetryResult(ok=True, value=value, attempts=attempt)
            except self.retry_on as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                logger.warning(
                    f"⚠️  {description} failed (attempt {attempt}/{self.max_attempts}): {e}; "
                    f"retrying in {delay:.1f}s"
                )
                await sleep(delay)
            except Exception as e:
                logger.error(f"❌ {description} failed with non-retryable error: {e}")
                return RetryResult(ok=False, error=e, attempts=attempt)

        logger.error(f"❌ {description} gave up after {self.max_attempts} attempts: {last_error}")
        return RetryResult(ok=False, error=last_error, attempts=self.max_attempts)
