"""Utility functions for the scene video pipeline."""

from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.rate_limiter import CallThrottle, get_shared_throttle
from scenecast.utils.retry import with_retry
from scenecast.utils.timeout import with_timeout

__all__ = [
    "CancellationToken",
    "CallThrottle",
    "get_shared_throttle",
    "with_retry",
    "with_timeout",
]
