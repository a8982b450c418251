"""Exception taxonomy for the telemetry simulator.

None of these are process-fatal.  Transport and protocol failures are
recovered where they happen (reconnect policy, dropped line) and only
surface as log events and ``last_error`` stats.
"""

from __future__ import annotations


class EwamError(Exception):
    """Base class for every simulator error."""


class TransportError(EwamError):
    """Socket-level failure: bind, connect or write."""


class BindError(TransportError):
    """Listening socket could not be bound (port in use, permission denied)."""

    def __init__(self, port: int, reason: str = "") -> None:
        self.port = port
        self.reason = reason
        msg = f"Failed to start server on port {port}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ConnectRefusedError(TransportError):
    """Remote host actively refused the connection."""


class SendError(TransportError):
    """A line could not be written to a connected socket."""


class ProtocolError(EwamError):
    """Inbound line is not a JSON object."""


class ExhaustionError(EwamError):
    """Reconnect attempts for the current target are used up."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Max reconnection attempts reached ({attempts}). Giving up.")


class InvalidTransitionError(EwamError):
    """Connection FSM received an event with no transition from the current state."""
