"""
Retry loop for coroutines

AsyncRetry re-runs a coroutine function, sleeping a fixed interval in
between, while it raises one of the exception types in ``retry_on``. Any
other exception ends the loop and propagates unchanged. The transaction
status poller builds on this, signalling "not settled yet" through a
private exception type.

- ``max_retries`` counts calls in total; ``None`` never gives up
- cancelling the task awaiting ``execute`` interrupts the sleep
"""

import asyncio
import logging
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

T = TypeVar('T')
LOG = logging.getLogger(__name__)

RetryCallback = Callable[[int, Exception, float], Awaitable[None]]


class RetryState:
    """Attempt bookkeeping for one execute() call"""

    def __init__(self, max_retries: Optional[int], interval: float):
        self.max_retries = max_retries
        self.interval = interval
        self.attempt = 0
        self.total_delay = 0.0
        self.last_exception: Optional[Exception] = None
        self.start_time = time.monotonic()

    @property
    def exhausted(self) -> bool:
        return self.max_retries is not None and self.attempt >= self.max_retries

    def should_retry(self) -> bool:
        return not self.exhausted

    def next_delay(self) -> float:
        """Delay before the next call, also added to total_delay"""
        self.total_delay += self.interval
        return self.interval

    def record_attempt(self, exception: Exception) -> None:
        self.attempt += 1
        self.last_exception = exception

    def get_summary(self) -> Dict[str, Any]:
        last_error = None
        if self.last_exception is not None:
            last_error = f"{type(self.last_exception).__name__}: {self.last_exception}"
        return {
            "attempts": self.attempt,
            "max_retries": self.max_retries,
            "total_delay": self.total_delay,
            "duration": time.monotonic() - self.start_time,
            "last_error": last_error,
        }


class AsyncRetry:
    """
    Re-run a coroutine function on selected exceptions.

    Usage:
        retry = AsyncRetry(interval=2.0, retry_on=(TransactionPending,))
        status = await retry.execute(poll_once, tx)
    """

    def __init__(
        self,
        interval: float = 1.0,
        max_retries: Optional[int] = None,
        retry_on: Tuple[Type[Exception], ...] = (ConnectionError, TimeoutError),
        on_retry: Optional[RetryCallback] = None
    ):
        """
        Args:
            interval: Seconds to wait between calls
            max_retries: Total number of calls allowed, None for no limit
            retry_on: Exception types that lead to another call
            on_retry: Awaited with (attempt, exception, delay) before each wait
        """
        self.interval = interval
        self.max_retries = max_retries
        self.retry_on = retry_on
        self.on_retry = on_retry

    def new_state(self) -> RetryState:
        return RetryState(self.max_retries, self.interval)

    async def execute(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Await func(*args, **kwargs) until it returns.

        Raises:
            The last retryable exception once max_retries calls have failed,
            or the first exception not listed in retry_on
        """
        state = self.new_state()
        name = getattr(func, "__name__", repr(func))

        while True:
            try:
                result = await func(*args, **kwargs)
            except self.retry_on as e:
                state.record_attempt(e)
                if state.exhausted:
                    LOG.debug(f"{name}: giving up, {state.get_summary()}")
                    raise

                delay = state.next_delay()
                LOG.debug(f"{name}: attempt {state.attempt} raised {type(e).__name__}, next try in {delay:.2f}s")
                if self.on_retry:
                    await self.on_retry(state.attempt, e, delay)
                await asyncio.sleep(delay)
            else:
                if state.attempt:
                    LOG.debug(f"{name}: done after {state.attempt + 1} calls ({state.total_delay:.2f}s waiting)")
                return result
