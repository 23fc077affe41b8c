"""Call Throttle - enforces minimum spacing between calls to a rate-limited backend."""

import time
from threading import Lock
from typing import Callable, Optional

from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError


class CallThrottle:
    """Thread-safe serialized queue spacing consecutive calls by ``min_interval``.

    Callers queue on a lock; each one waits out the spacing left by the call
    before it, records its own start time and proceeds. However many threads
    call concurrently, calls leave the queue at least ``min_interval`` apart.
    """

    def __init__(
        self,
        min_interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize throttle.

        Args:
            min_interval: Minimum seconds between consecutive calls
            clock: Monotonic clock (injectable for tests)
            sleep: Sleep function used when no cancel token is given
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self.lock = Lock()

    def wait_if_needed(self, cancel_token: Optional[CancellationToken] = None) -> float:
        """
        Block until this caller may proceed.

        Args:
            cancel_token: Optional token; cancellation ends the wait without
                consuming a slot

        Returns:
            Seconds spent waiting
        """
        with self.lock:
            waited = 0.0
            if self._last_call is not None:
                wait_time = self.min_interval - (self._clock() - self._last_call)
                if wait_time > 0:
                    if cancel_token is not None:
                        if cancel_token.wait(wait_time):
                            raise CancellationError()
                    else:
                        self._sleep(wait_time)
                    waited = wait_time
            elif cancel_token is not None:
                cancel_token.raise_if_cancelled()

            self._last_call = self._clock()
            return waited

    def can_proceed(self) -> bool:
        """
        Check if a call can proceed without waiting.

        Returns:
            True if call can proceed immediately
        """
        with self.lock:
            if self._last_call is None:
                return True
            return self._clock() - self._last_call >= self.min_interval

    def reset(self) -> None:
        """Forget the last call so the next one proceeds immediately."""
        with self.lock:
            self._last_call = None


# Process-wide throttles, one per rate-limited backend
_shared_throttles: dict[str, CallThrottle] = {}
_registry_lock = Lock()


def get_shared_throttle(backend: str, min_interval: float = 10.0) -> CallThrottle:
    """
    Get or create the process-wide throttle for a backend.

    Every pipeline composed with the shared throttle serializes through the
    same spacing queue. Pipelines that need independent spacing construct
    their own CallThrottle instead.
    """
    with _registry_lock:
        throttle = _shared_throttles.get(backend)
        if throttle is None:
            throttle = CallThrottle(min_interval=min_interval)
            _shared_throttles[backend] = throttle
        return throttle


def reset_shared_throttles() -> None:
    """Drop all process-wide throttles."""
    with _registry_lock:
        _shared_throttles.clear()
