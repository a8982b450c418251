"""Scenario presets -- fixed aircraft and emitter layouts around Melbourne.

Usage:
    scenario = load_scenario("combat", rng)
    engine = SimulationEngine(scenario, rng=rng)

Starting speed, heading and emitter frequency bands are drawn from ``rng``;
identifiers, types and positions are fixed per preset.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from loguru import logger

from .entities import Emitter, Entity, category_for_type

MELBOURNE = (-37.814, 144.963)


@dataclass
class Scenario:
    """Entities and emitters keyed by id, in creation order."""

    name: str
    entities: dict[str, Entity] = field(default_factory=dict)
    emitters: dict[str, Emitter] = field(default_factory=dict)

    def add_entity(self, entity_id: str, type_tag: str, lat: float, lon: float,
                   altitude: float, rng: random.Random) -> Entity:
        """Create an aircraft with a random speed in [400, 600) and heading."""
        speed = float(400 + rng.randrange(200))
        heading = float(rng.randrange(360))
        entity = Entity(
            id=entity_id,
            type=type_tag,
            lat=lat,
            lon=lon,
            altitude=altitude,
            speed=speed,
            heading=heading,
            category=category_for_type(type_tag),
            target_alt=altitude,
            target_speed=speed,
            target_heading=heading,
        )
        self.entities[entity_id] = entity
        logger.info(
            f"Created {entity_id} ({type_tag}) at {lat:.4f}, {lon:.4f} "
            f"ALT:{altitude:.0f} SPD:{speed:.0f} HDG:{heading:.0f}"
        )
        return entity

    def add_emitter(self, emitter_id: str, type_tag: str, category: str,
                    lat: float, lon: float, rng: random.Random) -> Emitter:
        """Create an active emitter with a random band around 8-12 GHz."""
        emitter = Emitter(
            id=emitter_id,
            type=type_tag,
            category=category,
            lat=lat,
            lon=lon,
            freq_min=8.0 + rng.randrange(20) / 10.0,
            freq_max=10.0 + rng.randrange(20) / 10.0,
        )
        self.emitters[emitter_id] = emitter
        logger.info(f"Created emitter: {emitter_id} ({type_tag})")
        return emitter


def _melbourne(s: Scenario, rng: random.Random) -> None:
    s.add_entity("FAST01", "F35", -37.814, 144.963, 25000, rng)
    s.add_entity("SLOW02", "P8", -37.714, 144.863, 30000, rng)
    s.add_entity("SURV03", "E7", -37.914, 144.863, 35000, rng)
    s.add_emitter("RADAR01", "RADAR", "TA", -37.804, 144.953, rng)
    s.add_emitter("RADAR02", "RADAR", "MG", -37.714, 144.963, rng)


def _convoy(s: Scenario, rng: random.Random) -> None:
    base_lat, base_lon = MELBOURNE
    for i in range(3):
        s.add_entity(
            f"CONV{i + 1:02d}", "C17",
            base_lat + (rng.randrange(100) - 50) * 0.0001,
            base_lon + (rng.randrange(100) - 50) * 0.0001,
            28000 + rng.randrange(4000),
            rng,
        )
    # Escort fighters
    s.add_entity("ESC01", "F22", base_lat + 0.02, base_lon + 0.02, 35000, rng)
    s.add_entity("ESC02", "F22", base_lat - 0.02, base_lon - 0.02, 35000, rng)


def _combat(s: Scenario, rng: random.Random) -> None:
    s.add_entity("RED01", "F35", -37.714, 144.863, 30000, rng)
    s.add_entity("RED02", "F35", -37.724, 144.873, 32000, rng)
    s.add_entity("BLUE01", "F22", -37.914, 144.963, 35000, rng)
    s.add_entity("BLUE02", "F22", -37.924, 144.973, 33000, rng)
    s.add_entity("AWC01", "E7", -37.814, 145.063, 38000, rng)
    s.add_emitter("JAM01", "JAMMER", "EW", -37.814, 144.913, rng)
    s.add_emitter("JAM02", "JAMMER", "EW", -37.714, 144.863, rng)


def _custom(s: Scenario, rng: random.Random) -> None:
    s.add_entity("TEST01", "F35", -37.814, 144.963, 30000, rng)
    s.add_emitter("TEST_RADAR", "RADAR", "TA", -37.804, 144.953, rng)


_PRESETS = {
    "melbourne": _melbourne,
    "convoy": _convoy,
    "combat": _combat,
    "custom": _custom,
}


def scenario_names() -> list[str]:
    return list(_PRESETS)


def load_scenario(name: str, rng: random.Random | None = None) -> Scenario:
    """Build a preset scenario by name.  Raises ValueError for unknown names."""
    builder = _PRESETS.get(name)
    if builder is None:
        raise ValueError(
            f"Unknown scenario {name!r}. Valid options are: {', '.join(_PRESETS)}"
        )
    scenario = Scenario(name=name)
    builder(scenario, rng or random.Random())
    return scenario
