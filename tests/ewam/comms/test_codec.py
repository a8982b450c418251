"""Unit tests for the line codec -- wire field order, framing, inbound inspection."""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from ewam.comms.codec import (
    ENCODING,
    LINE_TERMINATOR,
    MAX_LINE_BYTES,
    LineBuffer,
    decode_line,
    encode,
    encode_emitter,
    encode_entity,
    inspect_line,
    probe_record,
)
from ewam.errors import ProtocolError
from ewam.simulation.entities import Emitter, Entity, PECategory

pytestmark = pytest.mark.unit


def _entity() -> Entity:
    return Entity(
        id="FAST01", type="F35", lat=-37.814, lon=144.963,
        altitude=25000.0, speed=480.0, heading=12.5,
        category=PECategory.FIGHTER, priority="HIGH",
    )


def _emitter() -> Emitter:
    return Emitter(id="RADAR01", type="RADAR", category="TA",
                   lat=-37.804, lon=144.953, freq_min=8.7, freq_max=11.2)


ENTITY_KEYS = [
    "id", "type", "lat", "lon", "altitude", "speed", "heading",
    "priority", "jam", "ghost", "category", "state", "apd",
]

EMITTER_KEYS = [
    "id", "type", "category", "lat", "lon", "freqMin", "freqMax", "active",
    "eaPriority", "esPriority", "jamResponsible", "reactiveEligible",
    "preemptiveEligible", "consentRequired", "jam", "altitude", "heading",
    "speed", "jamIneffective", "jamEffective",
]


class TestFraming:
    """One compact UTF-8 object per line."""

    def test_constants(self):
        assert ENCODING == "utf-8"
        assert LINE_TERMINATOR == b"\n"

    def test_single_line_no_whitespace(self):
        line = encode_entity(_entity())
        assert line.endswith(b"\n")
        assert line.count(b"\n") == 1
        assert b": " not in line
        assert b", " not in line

    def test_plain_dict(self):
        assert encode({"a": 1, "b": "x"}) == b'{"a":1,"b":"x"}\n'

    def test_non_ascii_stays_utf8(self):
        line = encode({"msg": "café"})
        assert "café".encode("utf-8") in line


class TestEntityRecord:
    """Aircraft fields in wire order."""

    def test_key_order(self):
        obj = json.loads(encode_entity(_entity()))
        assert list(obj) == ENTITY_KEYS

    def test_values(self):
        obj = json.loads(encode_entity(_entity()))
        assert obj["id"] == "FAST01"
        assert obj["lat"] == -37.814
        assert obj["heading"] == 12.5
        assert obj["category"] == 1
        assert obj["ghost"] is False
        assert obj["jam"] is False
        assert obj["state"] == "active"
        assert obj["apd"] == obj["priority"] == "HIGH"


class TestEmitterRecord:
    """Emitter fields in wire order with zeroed kinematics."""

    def test_key_order(self):
        obj = json.loads(encode_emitter(_emitter()))
        assert list(obj) == EMITTER_KEYS

    def test_values(self):
        obj = json.loads(encode_emitter(_emitter()))
        assert obj["freqMin"] == 8.7
        assert obj["freqMax"] == 11.2
        assert obj["altitude"] == obj["heading"] == obj["speed"] == 0.0
        assert obj["active"] is True
        assert obj["preemptiveEligible"] is False
        assert obj["eaPriority"] == "MED"


class TestProbeRecord:
    """Test-mode message with a local ISO timestamp."""

    def test_fixed_time(self):
        rec = probe_record("ping", now=datetime(2024, 3, 1, 12, 30, 5, 123456))
        assert json.loads(encode(rec)) == {
            "type": "test",
            "message": "ping",
            "timestamp": "2024-03-01T12:30:05",
        }

    def test_default_time_is_now(self):
        rec = probe_record("Hello World")
        parsed = datetime.fromisoformat(rec.timestamp)
        assert abs((datetime.now() - parsed).total_seconds()) < 5


class TestDecode:
    """Inbound lines must be JSON objects."""

    def test_object(self):
        assert decode_line(b'{"id":"X1","lat":1}\n') == {"id": "X1", "lat": 1}

    def test_str_input(self):
        assert decode_line('{"a":true}') == {"a": True}

    @pytest.mark.parametrize("raw", [b"not json\n", b"{broken", b""])
    def test_malformed_raises(self, raw):
        with pytest.raises(ProtocolError, match="Malformed"):
            decode_line(raw)

    @pytest.mark.parametrize("raw", [b"[1,2]", b"42", b'"str"', b"null"])
    def test_non_object_raises(self, raw):
        with pytest.raises(ProtocolError, match="Expected a JSON object"):
            decode_line(raw)

    def test_inspect_returns_object(self):
        assert inspect_line(b'{"id":"RADAR01"}\n') == {"id": "RADAR01"}

    def test_inspect_object_without_id(self):
        assert inspect_line(b'{"type":"test"}') == {"type": "test"}

    @pytest.mark.parametrize("raw", [b"garbage\n", b"[1]\n", b"\xff\xfe\n"])
    def test_inspect_drops_without_raising(self, raw):
        assert inspect_line(raw) is None


class TestLineBuffer:
    """Reassembles newline-terminated lines across reads."""

    def test_whole_line(self):
        buf = LineBuffer()
        assert buf.feed(b'{"a":1}\n') == [b'{"a":1}\n']
        assert len(buf) == 0

    def test_partial_then_rest(self):
        buf = LineBuffer()
        assert buf.feed(b'{"a":') == []
        assert len(buf) == 5
        assert buf.feed(b'1}\n') == [b'{"a":1}\n']

    def test_many_lines_in_one_chunk(self):
        buf = LineBuffer()
        assert buf.feed(b"one\ntwo\nthr") == [b"one\n", b"two\n"]
        assert buf.feed(b"ee\n") == [b"three\n"]

    def test_blank_line(self):
        assert LineBuffer().feed(b"\n") == [b"\n"]

    def test_clear(self):
        buf = LineBuffer()
        buf.feed(b"pending")
        buf.clear()
        assert len(buf) == 0

    def test_oversized_partial_is_released(self):
        buf = LineBuffer(max_line=8)
        assert buf.feed(b"abcd") == []
        assert buf.feed(b"efghij") == [b"abcdefghij"]
        assert len(buf) == 0

    def test_stays_bounded_without_newlines(self):
        buf = LineBuffer()
        chunk = b"x" * 100_000
        for _ in range(100):
            buf.feed(chunk)
            assert len(buf) < MAX_LINE_BYTES

    def test_complete_lines_before_oversized_tail(self):
        buf = LineBuffer(max_line=4)
        assert buf.feed(b"ok\nlonger") == [b"ok\n", b"longer"]

    def test_default_limit(self):
        assert LineBuffer().max_line == MAX_LINE_BYTES == 64 * 1024
