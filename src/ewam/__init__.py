"""Networked EWAM telemetry simulator.

Streams simulated aircraft and emitter tracks as newline-delimited JSON
over TCP, as a reconnecting client or as an echo-relay server.
"""

__version__ = "1.0.0"
