"""Broadcast relay — WebSocket fan-out hub, standalone server, and ASGI app."""

from __future__ import annotations

from echomap.relay.hub import (
    BroadcastRelay,
    Connection,
    ConnectionState,
    Peer,
    RelayFullError,
)
from echomap.relay.server import RelayServer

__all__ = [
    "BroadcastRelay",
    "Connection",
    "ConnectionState",
    "Peer",
    "RelayFullError",
    "RelayServer",
]
