import logging
import time
from typing import Callable, Optional, Type, TypeVar, Tuple

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryError(Exception):
    """Raised by with_retry when every attempt failed with a retryable error. Carries the attempt count and the last error."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def backoff_delay(attempt: int, initial_seconds: float = 1.0) -> float:
    """Delay before the retry that follows a failed 1-based `attempt`: initial, 2x initial, 4x initial, ..."""
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    return initial_seconds * (2 ** (attempt - 1))


def with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_seconds: float = 1.0,
    retry_on: Optional[Tuple[Type[BaseException], ...]] = (Exception,),
    give_up_on: Tuple[Type[BaseException], ...] = (),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run fn() up to `attempts` times with exponential backoff between attempts (see backoff_delay). If retry_on is None, defaults to (Exception,).
    Errors in give_up_on propagate immediately without consuming the remaining attempts; errors outside retry_on propagate as-is.
    Raises RetryError when the attempt budget is exhausted.
    Why available: Used by the brief generator to ride out transient OpenAI failures without failing the job."""
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    exc_types: Tuple[Type[BaseException], ...] = retry_on or (Exception,)

    last_err: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except give_up_on:
            raise
        except exc_types as e:
            last_err = e
            logger.warning(
                "retry_attempt_failed",
                extra={"attempt": attempt, "attempts": attempts, "error": str(e)},
            )
            if attempt >= attempts:
                break
            sleep(backoff_delay(attempt, backoff_seconds))

    assert last_err is not None
    raise RetryError(attempts, last_err) from last_err
