"""ConnectionManager -- client-mode TCP link with auto-reconnect.

State machine:

    DISCONNECTED --CONNECT--> CONNECTING --ESTABLISHED--> CONNECTED
    CONNECTING/CONNECTED --RETRY--> RECONNECT_SCHEDULED --TIMER--> CONNECTING
    CONNECTING/CONNECTED --GIVE_UP--> GIVEN_UP
    any --CONNECT--> CONNECTING        (fresh explicit connect resets attempts)
    any --CLOSE--> DISCONNECTED

RETRY vs GIVE_UP is decided by the reconnect policy: auto-reconnect must be
enabled and fewer than MAX_RECONNECT_ATTEMPTS reconnects made since the
last successful connect or explicit connect().  The transition table is
plain data (TRANSITIONS) so it can be exercised without a socket.

All callbacks run on the asyncio event loop.  Sends are written straight to
the transport; a send while not CONNECTED is dropped and reported, never
queued.  Write failures are reported but do not drive the state machine --
only the socket's own closed/error events do.
"""

from __future__ import annotations

import asyncio
import socket
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger
from pydantic import BaseModel

from ewam.config import MAX_RECONNECT_ATTEMPTS
from ewam.errors import (
    ConnectRefusedError,
    ExhaustionError,
    InvalidTransitionError,
    SendError,
    TransportError,
)
from ewam.timer import Timer

from . import codec


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    GIVEN_UP = "given_up"


class ConnectionEvent(Enum):
    CONNECT = "connect"
    ESTABLISHED = "established"
    RETRY = "retry"
    GIVE_UP = "give_up"
    TIMER = "timer"
    CLOSE = "close"


class ErrorKind(Enum):
    CONNECTION_REFUSED = "connection_refused"
    HOST_NOT_FOUND = "host_not_found"
    TIMEOUT = "timeout"
    REMOTE_CLOSED = "remote_closed"
    NETWORK = "network"
    UNKNOWN = "unknown"


def _build_transitions() -> dict[tuple[ConnectionState, ConnectionEvent], ConnectionState]:
    S, E = ConnectionState, ConnectionEvent
    table = {
        (S.CONNECTING, E.ESTABLISHED): S.CONNECTED,
        (S.CONNECTING, E.RETRY): S.RECONNECT_SCHEDULED,
        (S.CONNECTED, E.RETRY): S.RECONNECT_SCHEDULED,
        (S.CONNECTING, E.GIVE_UP): S.GIVEN_UP,
        (S.CONNECTED, E.GIVE_UP): S.GIVEN_UP,
        (S.RECONNECT_SCHEDULED, E.TIMER): S.CONNECTING,
    }
    for state in S:
        table[(state, E.CONNECT)] = S.CONNECTING
        table[(state, E.CLOSE)] = S.DISCONNECTED
    return table


TRANSITIONS = _build_transitions()


class ConnectionStateMachine:
    """Tagged-enum FSM driven by TRANSITIONS."""

    def __init__(
        self,
        on_change: Callable[[ConnectionState, ConnectionState], None] | None = None,
    ) -> None:
        self.state = ConnectionState.DISCONNECTED
        self._on_change = on_change

    def can_fire(self, event: ConnectionEvent) -> bool:
        return (self.state, event) in TRANSITIONS

    def fire(self, event: ConnectionEvent) -> ConnectionState:
        key = (self.state, event)
        if key not in TRANSITIONS:
            raise InvalidTransitionError(
                f"No transition from {self.state.value} on {event.value}"
            )
        old, self.state = self.state, TRANSITIONS[key]
        if old is not self.state and self._on_change is not None:
            self._on_change(old, self.state)
        return self.state


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a socket exception onto the ErrorKind the policy cares about."""
    if isinstance(exc, ConnectionRefusedError):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(exc, socket.gaierror):
        return ErrorKind.HOST_NOT_FOUND
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return ErrorKind.REMOTE_CLOSED
    if isinstance(exc, OSError):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


Connector = Callable[[Callable[[], asyncio.Protocol], str, int], Awaitable[Any]]


class _ClientProtocol(asyncio.Protocol):
    """Forwards transport events to the owning manager."""

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager
        self.transport: asyncio.Transport | None = None
        self._lines = codec.LineBuffer()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]
        self._manager._on_transport_made(self)

    def data_received(self, data: bytes) -> None:
        for line in self._lines.feed(data):
            codec.inspect_line(line)

    def connection_lost(self, exc: Exception | None) -> None:
        self._manager._on_transport_lost(self, exc)


class ConnectionManager:
    """Owns the client socket, its state machine and the reconnect timer."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        reconnect_enabled: bool = True,
        reconnect_interval_ms: float = 5000,
        max_attempts: int = MAX_RECONNECT_ATTEMPTS,
        connector: Connector | None = None,
    ) -> None:
        self._loop = loop
        self.reconnect_enabled = reconnect_enabled
        self.reconnect_interval_ms = reconnect_interval_ms
        self.max_attempts = max_attempts
        self._connector = connector or loop.create_connection

        self._fsm = ConnectionStateMachine(self._state_changed)
        self._reconnect_timer = Timer(
            loop, self.try_reconnect, reconnect_interval_ms, single_shot=True,
        )
        self._host = ""
        self._port = 0
        self._attempts = 0
        self._attempt_seq = 0
        self._pending: set[asyncio.Task] = set()
        self._protocol: _ClientProtocol | None = None

        # Stats
        self.lines_sent = 0
        self.lines_dropped = 0
        self.last_error: Exception | None = None

        # Optional observer for state transitions
        self.on_state_change: Callable[[ConnectionState, ConnectionState], None] | None = None

    # -- introspection -------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._fsm.state

    @property
    def is_connected(self) -> bool:
        return self._fsm.state is ConnectionState.CONNECTED

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer.is_active

    @property
    def stats(self) -> dict:
        return {
            "state": self._fsm.state.value,
            "target": f"{self._host}:{self._port}",
            "attempts": self._attempts,
            "max_attempts": self.max_attempts,
            "lines_sent": self.lines_sent,
            "lines_dropped": self.lines_dropped,
            "last_error": str(self.last_error) if self.last_error else "",
        }

    # -- commands ------------------------------------------------------------

    def connect(self, host: str, port: int) -> None:
        """Start a fresh connection to host:port, resetting the attempt counter.

        An attempt already in flight is left alone; a scheduled reconnect is
        superseded and a live socket is closed.
        """
        self._host = host
        self._port = port
        self._attempts = 0
        self._reconnect_timer.stop()
        protocol, self._protocol = self._protocol, None
        if protocol is not None and protocol.transport is not None:
            protocol.transport.close()
        self._fsm.fire(ConnectionEvent.CONNECT)
        logger.info(f"Connecting to {host}:{port}...")
        self._open()

    def try_reconnect(self) -> None:
        """Reconnect timer callback."""
        if self._fsm.state is not ConnectionState.RECONNECT_SCHEDULED:
            return
        self._attempts += 1
        logger.info(f"Reconnection attempt {self._attempts} of {self.max_attempts}...")
        self._fsm.fire(ConnectionEvent.TIMER)
        self._open()

    def send(self, payload: bytes | str) -> bool:
        """Write one line.  Returns False if it was dropped or the write failed."""
        protocol = self._protocol
        if self._fsm.state is not ConnectionState.CONNECTED or protocol is None:
            self.lines_dropped += 1
            if self.reconnect_enabled and self._fsm.state is not ConnectionState.GIVEN_UP:
                logger.debug("Not connected. Dropping message")
            else:
                logger.debug("Not connected to server and max reconnection attempts reached")
            return False

        data = payload.encode(codec.ENCODING) if isinstance(payload, str) else payload
        if not data.endswith(codec.LINE_TERMINATOR):
            data += codec.LINE_TERMINATOR

        transport = protocol.transport
        if transport is None or transport.is_closing():
            return self._send_failed("transport is closing")
        try:
            transport.write(data)
        except (OSError, RuntimeError) as e:
            return self._send_failed(str(e))
        self.lines_sent += 1
        return True

    def send_json(self, obj: BaseModel | dict) -> bool:
        return self.send(codec.encode(obj))

    def close(self) -> None:
        """Tear down synchronously: no timer or pending attempt survives this."""
        self._reconnect_timer.stop()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        protocol, self._protocol = self._protocol, None
        if protocol is not None and protocol.transport is not None:
            protocol.transport.close()
        if self._fsm.state is not ConnectionState.DISCONNECTED:
            self._fsm.fire(ConnectionEvent.CLOSE)
            logger.info("Disconnecting...")

    # -- socket events -------------------------------------------------------

    def on_connected(self) -> None:
        self._fsm.fire(ConnectionEvent.ESTABLISHED)
        self._reconnect_timer.stop()
        self._attempts = 0
        logger.info("Connected to server")

    def on_disconnected(self) -> None:
        if self._fsm.state not in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            return
        if self._fsm.state is ConnectionState.CONNECTED:
            logger.info("Disconnected from server")
        self._apply_reconnect_policy()

    def on_error(self, kind: ErrorKind, exc: BaseException | None = None) -> None:
        """Report a socket error.  Only a refused connection drives the FSM."""
        if kind is ErrorKind.CONNECTION_REFUSED:
            self.last_error = ConnectRefusedError(
                f"Connection refused by {self._host}:{self._port}"
            )
        else:
            self.last_error = TransportError(f"{kind.value}: {exc}" if exc else kind.value)
        logger.error(f"Socket error: {exc if exc is not None else kind.value}")

        if kind is ErrorKind.CONNECTION_REFUSED and self._fsm.state in (
            ConnectionState.CONNECTING, ConnectionState.CONNECTED,
        ):
            logger.info("Connection refused.")
            self._apply_reconnect_policy()

    # -- internals -----------------------------------------------------------

    def _apply_reconnect_policy(self) -> None:
        if self.reconnect_enabled and self._attempts < self.max_attempts:
            self._fsm.fire(ConnectionEvent.RETRY)
            self._reconnect_timer.start(self.reconnect_interval_ms)
            logger.info(
                f"Will attempt to reconnect in {self.reconnect_interval_ms / 1000:g} seconds..."
            )
            return

        self._fsm.fire(ConnectionEvent.GIVE_UP)
        if self.reconnect_enabled:
            err = ExhaustionError(self._attempts)
            self.last_error = err
            logger.warning(str(err))
        else:
            logger.info("Auto-reconnect disabled. Giving up.")

    def _open(self) -> None:
        self._attempt_seq += 1
        task = self._loop.create_task(self._attempt(self._attempt_seq, self._host, self._port))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _attempt(self, seq: int, host: str, port: int) -> None:
        try:
            await self._connector(lambda: _ClientProtocol(self), host, port)
        except asyncio.CancelledError:
            raise
        except OSError as e:
            self._connect_failed(seq, classify_error(e), e)
        except Exception as e:
            # e.g. an over-long host label (UnicodeError) or a port above 65535 (OverflowError)
            self._connect_failed(seq, ErrorKind.UNKNOWN, e)

    def _connect_failed(self, seq: int, kind: ErrorKind, exc: Exception) -> None:
        # Superseded by a newer attempt, or already resolved
        if seq != self._attempt_seq or self._fsm.state is not ConnectionState.CONNECTING:
            logger.debug(f"Ignoring stale connect failure: {exc}")
            return
        self.on_error(kind, exc)
        if kind is not ErrorKind.CONNECTION_REFUSED:
            # The socket never opened; treat it as closed
            self.on_disconnected()

    def _on_transport_made(self, protocol: _ClientProtocol) -> None:
        if self._fsm.state is not ConnectionState.CONNECTING:
            logger.debug("Discarding surplus connection")
            if protocol.transport is not None:
                protocol.transport.close()
            return
        self._protocol = protocol
        self.on_connected()

    def _on_transport_lost(self, protocol: _ClientProtocol, exc: Exception | None) -> None:
        if protocol is not self._protocol:
            return
        self._protocol = None
        if exc is not None:
            self.on_error(classify_error(exc), exc)
        self.on_disconnected()

    def _send_failed(self, reason: str) -> bool:
        self.last_error = SendError(f"Failed to write data: {reason}")
        logger.error(str(self.last_error))
        return False

    def _state_changed(self, old: ConnectionState, new: ConnectionState) -> None:
        logger.debug(f"Connection state {old.value} -> {new.value}")
        if self.on_state_change is not None:
            self.on_state_change(old, new)
