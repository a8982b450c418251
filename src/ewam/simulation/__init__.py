"""Aircraft / emitter simulation: entity model, kinematics, scenarios, clock."""

from .engine import SimulationEngine, TickReport
from .entities import Emitter, Entity, PECategory
from .scenario import Scenario, load_scenario

__all__ = [
    "Emitter",
    "Entity",
    "PECategory",
    "Scenario",
    "SimulationEngine",
    "TickReport",
    "load_scenario",
]
