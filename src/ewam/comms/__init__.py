"""TCP transport: client connection manager, relay server and line codec."""

from .connection import ConnectionManager, ConnectionState, ErrorKind
from .server import ServerManager

__all__ = ["ConnectionManager", "ConnectionState", "ErrorKind", "ServerManager"]
