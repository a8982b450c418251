"""SimulationClock -- periodic tick source on the event loop."""

from __future__ import annotations

import asyncio
from typing import Callable

from loguru import logger

from ewam.timer import Timer


class SimulationClock:
    """Calls ``on_tick(dt_ms)`` every ``interval_ms``.

    Every tick reports the nominal interval as dt, not the measured wall
    time.  When ``gate`` is given, ticks for which it returns False are
    skipped entirely (no dt is accumulated).
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_ms: float,
        on_tick: Callable[[float], None],
        gate: Callable[[], bool] | None = None,
    ) -> None:
        self.interval_ms = interval_ms
        self._on_tick = on_tick
        self._gate = gate
        self._timer = Timer(loop, self._tick, interval_ms)
        self.ticks_fired = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._timer.is_active

    def start(self) -> None:
        self._timer.start(self.interval_ms)
        logger.info(f"Simulation timer started with interval: {self.interval_ms}ms")

    def stop(self) -> None:
        self._timer.stop()

    def _tick(self) -> None:
        if self._gate is not None and not self._gate():
            self.ticks_skipped += 1
            return
        self.ticks_fired += 1
        self._on_tick(self.interval_ms)
