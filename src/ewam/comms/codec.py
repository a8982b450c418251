"""Wire codec -- one compact JSON object per line.

Outbound records are defined as pydantic models so the field names and
order on the wire live in one place.  Inbound decoding is best-effort:
``inspect_line`` logs and drops anything that is not a JSON object and
never raises.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ewam.errors import ProtocolError
from ewam.simulation.entities import Emitter, Entity

ENCODING = "utf-8"
LINE_TERMINATOR = b"\n"
MAX_LINE_BYTES = 64 * 1024


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EntityRecord(_WireModel):
    """Aircraft update."""

    id: str
    type: str
    lat: float
    lon: float
    altitude: float
    speed: float
    heading: float
    priority: str
    jam: bool
    ghost: bool = False
    category: int
    state: str = "active"
    apd: str


class EmitterRecord(_WireModel):
    """Emitter update.  Ground based, so altitude/heading/speed are zero."""

    id: str
    type: str
    category: str
    lat: float
    lon: float
    freq_min: float
    freq_max: float
    active: bool
    ea_priority: str
    es_priority: str
    jam_responsible: bool
    reactive_eligible: bool
    preemptive_eligible: bool
    consent_required: bool
    jam: bool
    altitude: float = 0.0
    heading: float = 0.0
    speed: float = 0.0
    jam_ineffective: bool
    jam_effective: bool


class ProbeRecord(_WireModel):
    """Connectivity probe sent in test mode."""

    type: str = "test"
    message: str
    timestamp: str


def entity_record(entity: Entity) -> EntityRecord:
    return EntityRecord(
        id=entity.id,
        type=entity.type,
        lat=entity.lat,
        lon=entity.lon,
        altitude=entity.altitude,
        speed=entity.speed,
        heading=entity.heading,
        priority=entity.priority,
        jam=entity.jam,
        category=int(entity.category),
        # APD mirrors priority
        apd=entity.priority,
    )


def emitter_record(emitter: Emitter) -> EmitterRecord:
    return EmitterRecord(
        id=emitter.id,
        type=emitter.type,
        category=emitter.category,
        lat=emitter.lat,
        lon=emitter.lon,
        freq_min=emitter.freq_min,
        freq_max=emitter.freq_max,
        active=emitter.active,
        ea_priority=emitter.ea_priority,
        es_priority=emitter.es_priority,
        jam_responsible=emitter.jam_responsible,
        reactive_eligible=emitter.reactive_eligible,
        preemptive_eligible=emitter.preemptive_eligible,
        consent_required=emitter.consent_required,
        jam=emitter.jam,
        jam_ineffective=emitter.jam_ineffective,
        jam_effective=emitter.jam_effective,
    )


def probe_record(message: str, now: datetime | None = None) -> ProbeRecord:
    now = now or datetime.now()
    return ProbeRecord(message=message, timestamp=now.isoformat(timespec="seconds"))


def encode(obj: BaseModel | dict[str, Any]) -> bytes:
    """Serialize a record or plain dict to a newline-terminated compact line."""
    if isinstance(obj, BaseModel):
        obj = obj.model_dump(by_alias=True)
    text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    return text.encode(ENCODING) + LINE_TERMINATOR


def encode_entity(entity: Entity) -> bytes:
    return encode(entity_record(entity))


def encode_emitter(emitter: Emitter) -> bytes:
    return encode(emitter_record(emitter))


class LineBuffer:
    """Accumulates stream bytes and yields complete newline-terminated lines.

    A partial line that grows past ``max_line`` bytes is released as-is
    (without a terminator) rather than held until its newline arrives.
    """

    def __init__(self, max_line: int = MAX_LINE_BYTES) -> None:
        self._buf = bytearray()
        self.max_line = max_line

    def __len__(self) -> int:
        return len(self._buf)

    def feed(self, data: bytes) -> list[bytes]:
        """Add data; return every complete line (terminator included)."""
        self._buf.extend(data)
        lines = []
        while True:
            idx = self._buf.find(LINE_TERMINATOR)
            if idx < 0:
                break
            lines.append(bytes(self._buf[:idx + 1]))
            del self._buf[:idx + 1]
        if len(self._buf) >= self.max_line:
            logger.warning(
                f"Line exceeds {self.max_line} bytes, releasing {len(self._buf)} bytes unterminated"
            )
            lines.append(bytes(self._buf))
            self._buf.clear()
        return lines

    def clear(self) -> None:
        self._buf.clear()


def decode_line(line: bytes | str) -> dict[str, Any]:
    """Parse one inbound line.  Raises ProtocolError unless it is a JSON object."""
    if isinstance(line, bytes):
        line = line.decode(ENCODING, errors="replace")
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, ValueError) as e:
        raise ProtocolError(f"Malformed JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def inspect_line(line: bytes | str) -> dict[str, Any] | None:
    """Log an inbound line; return the decoded object or None if dropped."""
    text = line.decode(ENCODING, errors="replace") if isinstance(line, bytes) else line
    text = text.strip()
    logger.info(f"Received: {text}")
    try:
        data = decode_line(text)
    except ProtocolError as e:
        logger.warning(f"Error processing received data: {e}")
        return None
    if "id" in data:
        logger.info(f"Received entity/emitter update for ID: {data['id']}")
    return data
