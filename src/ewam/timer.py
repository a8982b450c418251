"""Timer -- single-shot or repeating callback on an asyncio event loop.

Backs both the reconnect timer and the simulation clock.  ``stop()``
cancels the pending handle synchronously, so a stopped timer never fires.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class Timer:
    """Schedules ``callback`` every ``interval_ms`` (or once if single_shot)."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[], None],
        interval_ms: float,
        single_shot: bool = False,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self.interval_ms = interval_ms
        self.single_shot = single_shot
        self._handle: asyncio.TimerHandle | None = None

    @property
    def is_active(self) -> bool:
        return self._handle is not None

    def start(self, interval_ms: float | None = None) -> None:
        """(Re)start the timer; a pending shot is cancelled first."""
        if interval_ms is not None:
            self.interval_ms = interval_ms
        self.stop()
        self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self.interval_ms / 1000.0, self._fire)

    def _fire(self) -> None:
        self._handle = None
        # Reschedule first so a raising callback does not stop the timer
        if not self.single_shot:
            self._schedule()
        self._callback()
