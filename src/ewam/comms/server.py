"""ServerManager -- listening socket plus an echo-to-all relay.

Every complete line received from any peer is inspected by the codec and
then written verbatim to every connected peer, the sender included.  The
peer set is private to the manager and only mutated from event-loop
callbacks (new connection, peer closed, stop).
"""

from __future__ import annotations

import asyncio

from loguru import logger

from ewam.errors import BindError

from . import codec


class Peer(asyncio.Protocol):
    """One accepted client connection."""

    def __init__(self, manager: ServerManager) -> None:
        self._manager = manager
        self.transport: asyncio.Transport | None = None
        self.lines = codec.LineBuffer()

    @property
    def address(self) -> str:
        if self.transport is None:
            return "?"
        peername = self.transport.get_extra_info("peername")
        if not peername:
            return "?"
        return f"{peername[0]}:{peername[1]}"

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]
        self._manager.on_new_connection(self)

    def data_received(self, data: bytes) -> None:
        self._manager.on_readable(self, data)

    def connection_lost(self, exc: Exception | None) -> None:
        self._manager.on_peer_closed(self)

    def write(self, data: bytes) -> bool:
        if self.transport is None or self.transport.is_closing():
            return False
        try:
            self.transport.write(data)
        except (OSError, RuntimeError) as e:
            logger.warning(f"Failed to write to {self.address}: {e}")
            return False
        return True


class ServerManager:
    """Owns the listener and the set of connected peers."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._server: asyncio.AbstractServer | None = None
        self._peers: set[Peer] = set()
        self.port: int | None = None
        self.lines_relayed = 0

    @property
    def is_listening(self) -> bool:
        return self._server is not None

    @property
    def peer_count(self) -> int:
        return len(self._peers)

    @property
    def bound_port(self) -> int | None:
        """Actual listening port (differs from ``port`` when 0 was requested)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self, port: int, host: str = "0.0.0.0") -> bool:
        """Bind and listen.  Already listening is a successful no-op.

        Raises BindError if the port cannot be bound.
        """
        if self._server is not None:
            logger.debug(f"Server already listening on port {self.port}")
            return True
        try:
            self._server = await self._loop.create_server(lambda: Peer(self), host, port)
        except OSError as e:
            logger.error(f"Failed to start server on port {port}: {e.strerror or e}")
            raise BindError(port, e.strerror or str(e)) from e
        self.port = port
        logger.info(f"Server listening on port {self.bound_port}")
        return True

    def stop(self) -> None:
        """Close the listener and drop every peer.  No-op when not listening."""
        if self._server is None:
            return
        self._server.close()
        self._server = None
        peers = list(self._peers)
        self._peers.clear()
        for peer in peers:
            if peer.transport is not None:
                peer.transport.abort()
            peer.lines.clear()
        logger.info(f"Server stopped, {len(peers)} client(s) released")

    # -- peer events ---------------------------------------------------------

    def on_new_connection(self, peer: Peer) -> None:
        if self._server is None:
            # Raced with stop()
            if peer.transport is not None:
                peer.transport.abort()
            return
        self._peers.add(peer)
        logger.info(f"New client connected. Total clients: {len(self._peers)}")

    def on_readable(self, peer: Peer, data: bytes) -> None:
        """Relay every complete line in data to all peers, sender included."""
        for line in peer.lines.feed(data):
            if line.strip():
                codec.inspect_line(line)
            self.broadcast(line)
            self.lines_relayed += 1

    def on_peer_closed(self, peer: Peer) -> None:
        if peer not in self._peers:
            return
        self._peers.discard(peer)
        peer.lines.clear()
        logger.info(f"Client disconnected. Remaining clients: {len(self._peers)}")

    # -- fan-out -------------------------------------------------------------

    def broadcast(self, line: bytes) -> int:
        """Write line to every peer; returns how many writes succeeded."""
        written = 0
        for peer in list(self._peers):
            if peer.write(line):
                written += 1
        return written
