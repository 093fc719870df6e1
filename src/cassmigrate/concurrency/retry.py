import functools
import random
import time
from typing import Any, TypeVar
from collections.abc import Callable

from cassmigrate.config.logging_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class _NotRetryable(BaseException):
    """Carries an exception rejected by a retry predicate past the retry loop."""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


def retry_with_exponential_backoff(
    func: Callable[[], T],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    on_error: Callable[[int, Exception], Any] | None = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Call a function, retrying with exponential backoff and optional jitter.

    Nothing in the migration path retries on its own; wrap individual store
    calls with this helper where a caller wants that behavior.

    Args:
        func: Function to call and retry on failure.
        max_retries: Maximum number of retry attempts (default: 3).
                     Use -1 for unlimited retries.
        initial_delay: Initial delay in seconds between retries (default: 1.0).
        max_delay: Maximum delay cap in seconds (default: 60.0).
        exponential_base: Base for exponential backoff calculation (default: 2.0).
                          Delay = initial_delay * (exponential_base ** attempt)
        jitter: Whether to add random jitter to prevent thundering herd (default: True).
        retryable_exceptions: Tuple of exception types to retry on (default: all exceptions).
        on_error: Called with the 1-based attempt number and the exception
                  after every failed attempt, including the last one.
        sleep: Function used to wait between attempts.

    Returns:
        The return value of the successful call.

    Raises:
        The last exception if all retries are exhausted.

    Example:
        rows = retry_with_exponential_backoff(
            lambda: session.execute("SELECT name FROM orders.migrations"),
            max_retries=5,
            initial_delay=0.5,
            retryable_exceptions=(NoHostAvailable, OperationTimedOut),
        )
    """
    if max_retries < -1:
        raise ValueError("max_retries must be -1 (unlimited) or >= 0")

    delay = initial_delay
    attempt = 0

    while True:
        try:
            return func()
        except retryable_exceptions as e:
            if on_error is not None:
                on_error(attempt + 1, e)

            if max_retries != -1 and attempt >= max_retries:
                log.error(
                    f"Operation failed after {max_retries} retries: {e}",
                    extra={"attempt": attempt + 1, "max_retries": max_retries},
                )
                raise

            log.warning(
                f"Operation failed (attempt {attempt + 1}), retrying in {delay:.2f}s: {e}",
                extra={"attempt": attempt + 1, "next_delay": delay},
            )

            actual_delay = delay * random.uniform(0.5, 1.5) if jitter else delay

            sleep(actual_delay)

            delay = min(delay * exponential_base, max_delay)
            attempt += 1


class RetryPolicy:
    """
    A reusable retry configuration.

    Example:
        policy = RetryPolicy(max_retries=5, initial_delay=2.0, retryable_exceptions=(NoHostAvailable,))
        policy.execute(lambda: lease.acquire(owner_id))

        # Custom predicate for determining if an exception is retryable
        policy = RetryPolicy(
            max_retries=3,
            retryable_predicate=lambda e: "timed out" in str(e),
        )
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
        retryable_predicate: Callable[[Exception], bool] | None = None,
        on_error: Callable[[int, Exception], Any] | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        """
        Initialize a retry policy.

        Args:
            max_retries: Maximum number of retry attempts (-1 for unlimited).
            initial_delay: Initial delay in seconds.
            max_delay: Maximum delay cap.
            exponential_base: Base for exponential backoff.
            jitter: Whether to add random jitter.
            retryable_exceptions: Exception types that are retryable.
            retryable_predicate: Custom function to determine if an exception is retryable.
            on_error: Notified of every failed attempt.
            sleep: Function used to wait between attempts.
        """
        self.max_retries: int = max_retries
        self.initial_delay: float = initial_delay
        self.max_delay: float = max_delay
        self.exponential_base: float = exponential_base
        self.jitter: bool = jitter
        self.retryable_exceptions: tuple[type[Exception], ...] = retryable_exceptions
        self.retryable_predicate: Callable[[Exception], bool] | None = retryable_predicate
        self.on_error = on_error
        self.sleep = sleep

    def execute(self, func: Callable[[], T]) -> T:
        """Call a function with this retry policy."""
        if self.retryable_predicate is None:
            return retry_with_exponential_backoff(
                func=func,
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
                exponential_base=self.exponential_base,
                jitter=self.jitter,
                retryable_exceptions=self.retryable_exceptions,
                on_error=self.on_error,
                sleep=self.sleep,
            )

        predicate = self.retryable_predicate

        def guarded() -> T:
            try:
                return func()
            except self.retryable_exceptions as e:
                if not predicate(e):
                    raise _NotRetryable(e) from e
                raise

        try:
            return retry_with_exponential_backoff(
                func=guarded,
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
                exponential_base=self.exponential_base,
                jitter=self.jitter,
                retryable_exceptions=self.retryable_exceptions,
                on_error=self.on_error,
                sleep=self.sleep,
            )
        except _NotRetryable as e:
            raise e.error from None

    def __call__(self, func: Callable[[], T]) -> Callable[[], T]:
        """
        Use as a decorator for zero-argument functions.

        Example:
            @RetryPolicy(max_retries=3, initial_delay=0.5)
            def load_applied():
                ...
        """

        @functools.wraps(func)
        def wrapper() -> T:
            return self.execute(func)

        return wrapper


__all__ = ["RetryPolicy", "retry_with_exponential_backoff"]
