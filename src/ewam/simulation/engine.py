"""SimulationEngine -- one tick of the aircraft/emitter world.

The engine owns the entity and emitter maps built by the scenario loader.
``step(dt_ms)`` advances every entity through the kinematics engine, drifts
every emitter, and returns a TickReport holding a before/after snapshot of
each record in creation order.  Serialization and transmission are left to
the runtime; presentation is left to the console.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable

from .entities import Emitter, Entity
from .kinematics import advance_entity, drift_emitter
from .scenario import Scenario


def wall_clock_ms() -> float:
    return time.time() * 1000.0


@dataclass(frozen=True)
class EntityUpdate:
    before: Entity
    after: Entity


@dataclass(frozen=True)
class EmitterUpdate:
    before: Emitter
    after: Emitter


@dataclass
class TickReport:
    """Everything that changed during one tick."""

    tick: int
    dt_ms: float
    entities: list[EntityUpdate] = field(default_factory=list)
    emitters: list[EmitterUpdate] = field(default_factory=list)


class SimulationEngine:
    """Advances a scenario's entities and emitters."""

    def __init__(
        self,
        scenario: Scenario,
        rng: random.Random | None = None,
        clock_ms: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self._scenario = scenario
        self._rng = rng or random.Random()
        self._clock_ms = clock_ms
        self._tick_count = 0

    @property
    def scenario_name(self) -> str:
        return self._scenario.name

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def get_entity(self, entity_id: str) -> Entity | None:
        return self._scenario.entities.get(entity_id)

    def get_emitter(self, emitter_id: str) -> Emitter | None:
        return self._scenario.emitters.get(emitter_id)

    def entities(self) -> list[Entity]:
        return list(self._scenario.entities.values())

    def emitters(self) -> list[Emitter]:
        return list(self._scenario.emitters.values())

    def step(self, dt_ms: float) -> TickReport:
        """Advance the world by dt_ms milliseconds."""
        self._tick_count += 1
        report = TickReport(tick=self._tick_count, dt_ms=dt_ms)

        for entity in self._scenario.entities.values():
            before = entity.snapshot()
            advance_entity(entity, dt_ms, self._rng)
            report.entities.append(EntityUpdate(before, entity.snapshot()))

        now_ms = self._clock_ms()
        for emitter in self._scenario.emitters.values():
            before = emitter.snapshot()
            drift_emitter(emitter, now_ms)
            report.emitters.append(EmitterUpdate(before, emitter.snapshot()))

        return report
