"""Kinematics engine -- dead reckoning and setpoint convergence for aircraft.

Per tick each entity is advanced in a fixed order:

  1. position   -- great-circle projection of speed * dt along heading
  2. heading    -- turn toward target_heading at 3 deg/s (shorter direction)
  3. altitude   -- climb/descend toward target_alt at 2000 ft/min
  4. speed      -- accelerate toward target_speed at 50 kt/min
  5. retarget   -- 5% chance of drawing fresh setpoints

Position uses the speed *before* this tick's acceleration.  The position
math is kept literal (same constants, same operation order) so identical
inputs give bit-identical output.

Emitters do not integrate dt.  Their drift is keyed to wall-clock time and
added to lat/lon every tick, so it accumulates rather than tracing a
bounded circle.
"""

from __future__ import annotations

import math
import random

from loguru import logger

from .entities import Emitter, Entity

EARTH_RADIUS_KM = 6371.0
KM_PER_NM = 1.852

TURN_RATE = 3.0             # degrees per second
CLIMB_RATE = 2000.0         # feet per minute
ACCELERATION = 50.0         # knots per minute

HEADING_DEADBAND = 1.0      # degrees
ALTITUDE_DEADBAND = 100.0   # feet
SPEED_DEADBAND = 10.0       # knots

RETARGET_PERCENT = 5
ALT_MIN, ALT_MAX = 20000.0, 40000.0
SPEED_MIN, SPEED_MAX = 300.0, 600.0

EMITTER_DRIFT_RADIUS = 0.01         # degrees
EMITTER_DRIFT_PERIOD_MS = 10000.0


def wrap_heading(heading: float) -> float:
    """Wrap into [0, 360)."""
    heading = heading % 360.0
    # -1e-15 % 360 rounds to 360.0
    if heading >= 360.0:
        heading = 0.0
    return heading


def distance_km(speed_kt: float, dt_ms: float) -> float:
    """Distance covered in km at speed_kt knots over dt_ms milliseconds."""
    delta_hours = dt_ms / (1000.0 * 60.0 * 60.0)
    distance_nm = speed_kt * delta_hours
    return distance_nm * KM_PER_NM


def update_position(entity: Entity, dist_km: float) -> None:
    """Project entity along its heading by dist_km on a spherical earth."""
    lat1 = entity.lat * math.pi / 180
    lon1 = entity.lon * math.pi / 180
    bearing = entity.heading * math.pi / 180

    angular_distance = dist_km / EARTH_RADIUS_KM

    lat2 = math.asin(math.sin(lat1) * math.cos(angular_distance)
                     + math.cos(lat1) * math.sin(angular_distance) * math.cos(bearing))

    lon2 = lon1 + math.atan2(math.sin(bearing) * math.sin(angular_distance) * math.cos(lat1),
                             math.cos(angular_distance) - math.sin(lat1) * math.sin(lat2))

    entity.lat = lat2 * 180 / math.pi
    entity.lon = lon2 * 180 / math.pi


def update_dynamics(entity: Entity, dt_ms: float) -> None:
    """Step heading, altitude and speed toward their targets at fixed rates."""
    dt = dt_ms / 1000.0

    if abs(entity.heading - entity.target_heading) > HEADING_DEADBAND:
        diff = entity.target_heading - entity.heading
        # Normalize to (-180, 180]
        if diff > 180:
            diff -= 360
        if diff <= -180:
            diff += 360
        direction = 1.0 if diff > 0 else -1.0
        entity.turn_rate = TURN_RATE * direction
        entity.heading = wrap_heading(entity.heading + entity.turn_rate * dt)

    if abs(entity.altitude - entity.target_alt) > ALTITUDE_DEADBAND:
        entity.climb_rate = CLIMB_RATE if entity.target_alt > entity.altitude else -CLIMB_RATE
        entity.altitude += (entity.climb_rate / 60.0) * dt

    if abs(entity.speed - entity.target_speed) > SPEED_DEADBAND:
        accel = ACCELERATION if entity.target_speed > entity.speed else -ACCELERATION
        entity.speed += (accel / 60.0) * dt


def set_new_targets(entity: Entity, rng: random.Random) -> bool:
    """Draw fresh setpoints around the current state.

    Returns True when any setpoint moved enough to be worth reporting.
    """
    old_alt = entity.target_alt
    old_spd = entity.target_speed
    old_hdg = entity.target_heading

    entity.target_alt = entity.altitude + (rng.randrange(10000) - 5000)
    entity.target_alt = max(ALT_MIN, min(ALT_MAX, entity.target_alt))

    entity.target_speed = entity.speed + (rng.randrange(100) - 50)
    entity.target_speed = max(SPEED_MIN, min(SPEED_MAX, entity.target_speed))

    entity.target_heading = wrap_heading(entity.heading + (rng.randrange(120) - 60))

    alt_changed = abs(entity.target_alt - old_alt) > 100
    spd_changed = abs(entity.target_speed - old_spd) > 10
    hdg_changed = abs(entity.target_heading - old_hdg) > 5
    if not (alt_changed or spd_changed or hdg_changed):
        return False

    parts = []
    if alt_changed:
        arrow = "↑" if entity.target_alt > old_alt else "↓"
        parts.append(f"ALT:{arrow}{entity.target_alt:.0f}")
    if spd_changed:
        arrow = "↑" if entity.target_speed > old_spd else "↓"
        parts.append(f"SPD:{arrow}{entity.target_speed:.0f}")
    if hdg_changed:
        arrow = "→" if entity.target_heading > old_hdg else "←"
        parts.append(f"HDG:{arrow}{entity.target_heading:.0f}")
    logger.info(f"{entity.id} adjusting course: {' '.join(parts)}")
    return True


def advance_entity(entity: Entity, dt_ms: float, rng: random.Random) -> None:
    """Run one full kinematics tick on a single entity."""
    update_position(entity, distance_km(entity.speed, dt_ms))
    update_dynamics(entity, dt_ms)
    if rng.randrange(100) < RETARGET_PERCENT:
        set_new_targets(entity, rng)


def drift_emitter(emitter: Emitter, now_ms: float) -> None:
    """Nudge an emitter along its wall-clock keyed circular walk.

    The offset is added to the current position rather than to a fixed
    origin, so successive ticks accumulate.
    """
    angle = now_ms / EMITTER_DRIFT_PERIOD_MS
    emitter.lat = emitter.lat + EMITTER_DRIFT_RADIUS * math.sin(angle)
    emitter.lon = emitter.lon + EMITTER_DRIFT_RADIUS * math.cos(angle)
