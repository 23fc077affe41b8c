"""Deadline wrapper for blocking calls.

The wrapped call is not interrupted when the deadline passes or the token is
cancelled: it keeps running in a daemon thread and its eventual result is
discarded. Only the caller is released.
"""

import threading
import time
from typing import Callable, Optional, TypeVar

from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError, StageTimeoutError

T = TypeVar("T")

CANCEL_POLL_SECONDS = 0.05


def with_timeout(
    fn: Callable[[], T],
    timeout_seconds: Optional[float],
    message: str = "Request timed out",
    cancel_token: Optional[CancellationToken] = None,
) -> T:
    """
    Run ``fn`` and raise StageTimeoutError if it does not finish in time.

    Args:
        fn: Zero-argument callable
        timeout_seconds: Deadline in seconds; None disables the deadline
        message: Message of the raised StageTimeoutError
        cancel_token: Optional token; once cancelled the caller stops waiting
            and CancellationError is raised

    Returns:
        The value returned by ``fn``; its exceptions propagate unchanged
    """
    if timeout_seconds is None and cancel_token is None:
        return fn()
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    outcome: dict = {}
    done = threading.Event()

    def target() -> None:
        try:
            outcome["value"] = fn()
        except BaseException as e:  # re-raised in the caller's thread
            outcome["error"] = e
        finally:
            done.set()

    worker = threading.Thread(target=target, name="with-timeout", daemon=True)
    worker.start()

    deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
    while not done.is_set():
        remaining = None if deadline is None else deadline - time.monotonic()
        if remaining is not None and remaining <= 0:
            raise StageTimeoutError(message, detail=f"deadline {timeout_seconds}s exceeded")
        if cancel_token is None:
            done.wait(remaining)
            continue
        step = CANCEL_POLL_SECONDS if remaining is None else min(CANCEL_POLL_SECONDS, remaining)
        if cancel_token.wait(step) and not done.is_set():
            raise CancellationError()

    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]
