"""Cancellation token shared between a caller and the work it started."""

import threading
from typing import Optional

from scenecast.utils.error_handler import CancellationError


class CancellationToken:
    """Thread-safe, one-way cancellation flag.

    One token governs one batch generation; a scene regeneration gets its own
    token so the two can be cancelled independently. A child token is
    cancelled together with its parent but can also be cancelled on its own,
    which is how a failing scene stops its siblings without cancelling the
    caller's token.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list["CancellationToken"] = []
        if parent is not None:
            parent._adopt(self)

    def child(self) -> "CancellationToken":
        """Create a token cancelled whenever this one is."""
        return CancellationToken(parent=self)

    def _adopt(self, child: "CancellationToken") -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.append(child)
                return
        child.cancel()

    def cancel(self) -> None:
        """Signal cancellation to every holder of this token and its children."""
        with self._lock:
            self._event.set()
            children, self._children = self._children, []
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float]) -> bool:
        """
        Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if the token was cancelled during (or before) the wait
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self, message: Optional[str] = None) -> None:
        if self._event.is_set():
            raise CancellationError(message) if message else CancellationError()
