"""Runtimes -- wire clock, engine, codec and transport for each run mode.

ClientRuntime  -- simulate a scenario and stream it to a remote listener
ServerRuntime  -- echo relay; optionally broadcast a scenario to peers
ProbeRuntime   -- send a test message on a fixed interval

Data flow per tick:
  SimulationClock --> SimulationEngine.step --> codec.encode_* --> sink
where the sink is ConnectionManager.send (client) or
ServerManager.broadcast (server).
"""

from __future__ import annotations

import asyncio
import random
from typing import Callable

from loguru import logger

from ewam.comms import codec
from ewam.comms.connection import ConnectionManager
from ewam.comms.server import ServerManager
from ewam.config import Settings
from ewam.simulation.clock import SimulationClock
from ewam.simulation.engine import SimulationEngine, TickReport
from ewam.simulation.scenario import load_scenario
from ewam.timer import Timer

ReportHook = Callable[[TickReport], None]


def emit_report(report: TickReport, sink: Callable[[bytes], object]) -> int:
    """Encode every entity then every emitter in the report and hand each line to sink."""
    count = 0
    for update in report.entities:
        sink(codec.encode_entity(update.after))
        count += 1
    for update in report.emitters:
        sink(codec.encode_emitter(update.after))
        count += 1
    return count


class ClientRuntime:
    """Streams a scenario over a ConnectionManager.

    The simulation only advances while connected; ticks that land while
    the link is down are skipped.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        settings: Settings,
        engine: SimulationEngine | None = None,
        connection: ConnectionManager | None = None,
        on_report: ReportHook | None = None,
    ) -> None:
        self.settings = settings
        self.engine = engine or SimulationEngine(load_scenario(settings.scenario))
        self.connection = connection or ConnectionManager(
            loop,
            reconnect_enabled=settings.reconnect_enabled,
            reconnect_interval_ms=settings.reconnect_interval_ms,
        )
        self.clock = SimulationClock(
            loop, settings.interval_ms, self.tick, gate=lambda: self.connection.is_connected,
        )
        self._on_report = on_report

    def start(self) -> None:
        self.clock.start()
        self.connection.connect(self.settings.host, self.settings.port)

    def stop(self) -> None:
        self.clock.stop()
        self.connection.close()

    def tick(self, dt_ms: float) -> TickReport:
        report = self.engine.step(dt_ms)
        if self._on_report is not None:
            self._on_report(report)
        emit_report(report, self.connection.send)
        return report


class ServerRuntime:
    """Relays peer lines; with ``serve_scenario`` also broadcasts a simulation."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        settings: Settings,
        server: ServerManager | None = None,
        engine: SimulationEngine | None = None,
        on_report: ReportHook | None = None,
    ) -> None:
        self.settings = settings
        self.server = server or ServerManager(loop)
        self.engine = engine
        if self.engine is None and settings.serve_scenario:
            self.engine = SimulationEngine(load_scenario(settings.serve_scenario, random.Random()))
        self.clock: SimulationClock | None = None
        if self.engine is not None:
            self.clock = SimulationClock(
                loop, settings.interval_ms, self.tick, gate=lambda: self.server.peer_count > 0,
            )
        self._on_report = on_report

    async def start(self) -> None:
        """Raises BindError if the port is unavailable."""
        await self.server.start(self.settings.port)
        if self.clock is not None:
            self.clock.start()

    def stop(self) -> None:
        if self.clock is not None:
            self.clock.stop()
        logger.info("Stopping server...")
        self.server.stop()

    def tick(self, dt_ms: float) -> TickReport | None:
        if self.engine is None:
            return None
        report = self.engine.step(dt_ms)
        if self._on_report is not None:
            self._on_report(report)
        emit_report(report, self.server.broadcast)
        return report


class ProbeRuntime:
    """Sends ``{type: "test", message, timestamp}`` every interval."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        settings: Settings,
        connection: ConnectionManager | None = None,
    ) -> None:
        self.settings = settings
        self.connection = connection or ConnectionManager(
            loop,
            reconnect_enabled=settings.reconnect_enabled,
            reconnect_interval_ms=settings.reconnect_interval_ms,
        )
        self._timer = Timer(loop, self.send_probe, settings.interval_ms)
        self.probes_sent = 0

    def start(self) -> None:
        self.connection.connect(self.settings.host, self.settings.port)
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self.connection.close()

    def send_probe(self) -> bool:
        ok = self.connection.send_json(codec.probe_record(self.settings.test_message))
        if ok:
            self.probes_sent += 1
        return ok
