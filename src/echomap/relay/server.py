"""Standalone async WebSocket relay server.

Listens on ``host:port`` (``0.0.0.0`` by default so sensors on the LAN
can reach it) and hands every connection to a :class:`BroadcastRelay`.
Use :func:`echomap.relay.app.create_app` instead when the scan REST API
should share the port.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from echomap.relay.hub import BroadcastRelay, RelayFullError

if TYPE_CHECKING:
    import websockets.asyncio.server as ws_server

logger = logging.getLogger(__name__)

# RFC 6455 "try again later".
_CLOSE_TRY_AGAIN = 1013


class RelayServer:
    """Async WebSocket server that relays frames between all clients."""

    def __init__(
        self,
        relay: BroadcastRelay,
        port: int,
        host: str = "0.0.0.0",
    ) -> None:
        self._relay = relay
        self._host = host
        self._port = port
        self._server: ws_server.Server | None = None

    async def start(self) -> None:
        """Start listening. With ``port=0`` the OS picks a free port."""
        import websockets.asyncio.server as ws_server_mod

        self._server = await ws_server_mod.serve(
            self._handler,
            host=self._host,
            port=self._port,
        )
        if self._port == 0:
            self._port = self._server.sockets[0].getsockname()[1]
        logger.info("Relay WebSocket server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        """Close every client and shut the listener down."""
        if self._server is not None:
            await self._relay.close()
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("Relay WebSocket server stopped")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def _handler(self, websocket: Any) -> None:
        """Relay one client's frames until it disconnects.

        Frames are forwarded opaquely; nothing a client sends can crash
        the server or another client's connection.
        """
        remote = getattr(websocket, "remote_address", ("unknown", 0))
        try:
            await self._relay.serve_peer(websocket, websocket, remote)
        except RelayFullError as exc:
            logger.warning("Rejecting %s: %s", remote, exc)
            await websocket.close(code=_CLOSE_TRY_AGAIN, reason="relay full")

    @property
    def port(self) -> int:
        """Bound port (resolved after :meth:`start` when ``0`` was requested)."""
        return self._port

    @property
    def relay(self) -> BroadcastRelay:
        return self._relay
