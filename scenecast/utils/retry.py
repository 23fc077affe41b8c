"""Retry with exponential back-off for fallible external calls."""

import time
from typing import Any, Callable, Optional, TypeVar

from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 1.0


def backoff_delay(attempt_index: int, initial_delay: float = DEFAULT_INITIAL_DELAY) -> float:
    """Delay before the next attempt: initial_delay * 2^attempt_index."""
    return initial_delay * (2**attempt_index)


def with_retry(
    fn: Callable[[], T],
    attempts: int = DEFAULT_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    cancel_token: Optional[CancellationToken] = None,
    logger: Optional[Any] = None,
    operation: str = "call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` until it succeeds or ``attempts`` are exhausted.

    The error of the final attempt is re-raised unchanged. Cancellation is
    never retried, and a back-off wait ends as soon as the token is cancelled.

    Args:
        fn: Zero-argument callable to invoke
        attempts: Total number of attempts (>= 1)
        initial_delay: Delay in seconds after the first failure, doubled each time
        cancel_token: Optional token checked before each attempt and during back-off
        logger: Optional logger for retry warnings
        operation: Name used in log messages
        sleep: Sleep function used when no cancel token is given

    Returns:
        The value returned by ``fn``
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        try:
            return fn()
        except CancellationError:
            raise
        except Exception as e:
            if attempt == attempts - 1:
                if logger:
                    logger.error(f"{operation} failed after {attempts} attempts: {e}")
                raise
            delay = backoff_delay(attempt, initial_delay)
            if logger:
                logger.warning(
                    f"{operation} failed (attempt {attempt + 1}/{attempts}): {e}. Retrying in {delay:.1f}s..."
                )
            if cancel_token is not None:
                if cancel_token.wait(delay):
                    raise CancellationError()
            else:
                sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
