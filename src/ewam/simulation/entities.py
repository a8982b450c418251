"""Passive data for simulated aircraft and emitters.

Entity   -- aircraft with kinematic state and target setpoints
Emitter  -- ground radar / jammer with frequency band and EW flags
PECategory -- integer classification derived from an aircraft type tag
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import IntEnum


class PECategory(IntEnum):
    """Platform classification, emitted on the wire as an integer."""
    UNKNOWN = 0
    FIGHTER = 1
    BOMBER = 2
    TRANSPORT = 3
    SURVEILLANCE = 4
    MARITIME_PATROL = 5
    TANKER = 6


_CATEGORY_BY_TYPE: dict[str, PECategory] = {
    "F35": PECategory.FIGHTER,
    "F22": PECategory.FIGHTER,
    "F18": PECategory.FIGHTER,
    "F16": PECategory.FIGHTER,
    "B1": PECategory.BOMBER,
    "B52": PECategory.BOMBER,
    "C17": PECategory.TRANSPORT,
    "C130": PECategory.TRANSPORT,
    "E7": PECategory.SURVEILLANCE,
    "E3": PECategory.SURVEILLANCE,
    "P8": PECategory.MARITIME_PATROL,
    "KC30": PECategory.TANKER,
    "K35R": PECategory.TANKER,
}


def category_for_type(type_tag: str) -> PECategory:
    """Classify an aircraft type tag; unknown tags map to UNKNOWN."""
    return _CATEGORY_BY_TYPE.get(type_tag.upper(), PECategory.UNKNOWN)


@dataclass
class Entity:
    """A simulated aircraft.

    speed is knots, altitude feet, heading degrees clockwise from north.
    turn_rate / climb_rate record the last rate applied by the kinematics
    engine and are informational only.
    """
    id: str
    type: str
    lat: float
    lon: float
    altitude: float
    speed: float
    heading: float
    category: PECategory = PECategory.UNKNOWN
    turn_rate: float = 0.0      # degrees per second
    climb_rate: float = 0.0     # feet per minute
    priority: str = "MED"
    jam: bool = False

    # Setpoints the kinematics engine steers toward
    target_alt: float = 0.0
    target_speed: float = 0.0
    target_heading: float = 0.0

    def snapshot(self) -> Entity:
        """Detached copy for old/new comparisons."""
        return dataclasses.replace(self)


@dataclass
class Emitter:
    """A ground-based radar or jammer.  Frequencies are in GHz."""
    id: str
    type: str
    category: str
    lat: float
    lon: float
    freq_min: float
    freq_max: float
    active: bool = True
    ea_priority: str = "MED"
    es_priority: str = "MED"
    jam_responsible: bool = True
    reactive_eligible: bool = True
    preemptive_eligible: bool = False
    consent_required: bool = False
    jam: bool = False
    jam_effective: bool = False
    jam_ineffective: bool = False

    def __post_init__(self) -> None:
        if self.freq_min > self.freq_max:
            raise ValueError(
                f"Emitter {self.id}: freq_min {self.freq_min} > freq_max {self.freq_max}"
            )

    def snapshot(self) -> Emitter:
        return dataclasses.replace(self)
