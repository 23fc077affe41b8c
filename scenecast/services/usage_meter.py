"""Usage Meter - accumulates generation cost from scene completion events."""

import threading
from typing import Any

from scenecast.core.config import Settings
from scenecast.models.schemas import SceneCompletedEvent


class UsageMeter:
    """Thread-safe session cost tracker.

    Pass ``record`` as the ``on_scene_complete`` callback. Recorded cost is
    never rolled back, including for scenes of a batch that later failed.
    """

    def __init__(self, settings: Settings, logger: Any):
        self.settings = settings
        self.logger = logger
        self._lock = threading.Lock()
        self._entries: list[SceneCompletedEvent] = []
        self._total = 0.0

    def record(self, event: SceneCompletedEvent) -> None:
        with self._lock:
            self._entries.append(event)
            self._total += event.cost
            total = self._total
        self.logger.debug(f"Usage: {event.label or f'scene-{event.scene_index}'} ${event.cost:.3f} (session ${total:.3f})")
        if total >= self.settings.session_cost_warn:
            self.logger.warning(f"Session cost ${total:.2f} is over the warning threshold")

    @property
    def total(self) -> float:
        with self._lock:
            return self._total

    @property
    def entries(self) -> list[SceneCompletedEvent]:
        with self._lock:
            return list(self._entries)

    def should_warn(self) -> bool:
        return self.total >= self.settings.session_cost_warn

    def can_proceed(self) -> bool:
        return self.total < self.settings.session_cost_block

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total = 0.0
        self.logger.info("Usage meter reset")
