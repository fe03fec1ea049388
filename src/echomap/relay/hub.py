"""Broadcast hub: forwards every inbound message to every other peer.

The live connection set is owned by :class:`BroadcastRelay` and only
touched from the event loop, between awaits, so connect, close, and
broadcast never interleave.  Broadcast walks a tuple copy of the set.

Each :class:`Connection` owns a bounded outbound queue drained by its
own writer task.  A stalled peer fills only its own queue; once full,
deliveries to it are dropped according to the relay's
:class:`OverflowPolicy` while every other peer keeps receiving.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from echomap.errors import TransportError
from echomap.models.config import DEFAULT_QUEUE_SIZE, OverflowPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

logger = logging.getLogger(__name__)

Payload = str | bytes


class Peer(Protocol):
    """Transport-side handle the relay writes to."""

    async def send(self, message: Payload) -> None: ...

    async def close(self) -> None: ...


class ConnectionState(StrEnum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


_ids = itertools.count(1)


class Connection:
    """One live peer: identity, state, and its bounded outbound queue."""

    def __init__(
        self,
        peer: Peer,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        overflow: OverflowPolicy = OverflowPolicy.DROP_NEW,
        remote: Any = None,
    ) -> None:
        self.id = next(_ids)
        self.peer = peer
        self.remote = remote
        self.state = ConnectionState.OPEN
        self._overflow = overflow
        self._queue: asyncio.Queue[Payload] = asyncio.Queue(maxsize=queue_size)
        self._writer: asyncio.Task[None] | None = None
        self._sent = 0
        self._dropped = 0

    def __repr__(self) -> str:
        return f"<Connection #{self.id} {self.remote} {self.state}>"

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def pending(self) -> int:
        """Messages queued but not yet written."""
        return self._queue.qsize()

    @property
    def sent_count(self) -> int:
        return self._sent

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def start(self) -> None:
        """Start the writer task. Must be called from a running loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop(), name=f"relay-writer-{self.id}")

    def enqueue(self, message: Payload) -> bool:
        """Queue *message* without blocking.

        Returns ``False`` if the message was dropped (peer closing, or
        queue full under ``drop-new``).  Under ``drop-oldest`` the oldest
        queued message is discarded to make room and ``True`` is returned.
        """
        if not self.is_open:
            return False
        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            if self._overflow is OverflowPolicy.DROP_OLDEST:
                with contextlib.suppress(asyncio.QueueEmpty):
                    self._queue.get_nowait()
                self._queue.put_nowait(message)
                logger.debug("Queue full for %r; dropped oldest message", self)
                return True
            logger.debug("Queue full for %r; dropped new message", self)
            return False

    async def _write_loop(self) -> None:
        """Drain the queue to the peer until closed or the peer goes away."""
        while True:
            message = await self._queue.get()
            try:
                await self.peer.send(message)
                self._sent += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                # Peer gone mid-send; the transport handler will report the close.
                logger.debug("Send to %r failed; stopping writer", self, exc_info=True)
                self.state = ConnectionState.CLOSING
                return

    async def close(self) -> None:
        """Stop the writer and mark the connection closed. Idempotent."""
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer
        self._writer = None


class RelayFullError(TransportError):
    """The relay is at its configured connection limit."""


class BroadcastRelay:
    """Owns the live connection set and fans messages out across it.

    Parameters:
        queue_size: Per-peer outbound queue bound.
        overflow: What a full peer queue does with the next message.
        max_connections: Connection cap, ``0`` for unlimited.
    """

    def __init__(
        self,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        overflow: OverflowPolicy = OverflowPolicy.DROP_NEW,
        max_connections: int = 0,
    ) -> None:
        if queue_size <= 0:
            raise ValueError(f"queue_size must be positive, got {queue_size}")
        self._queue_size = queue_size
        self._overflow = OverflowPolicy(overflow)
        self._max_connections = max_connections
        self._connections: dict[int, Connection] = {}
        self._message_count = 0
        self._dropped_count = 0

    # -- Properties -----------------------------------------------------------

    @property
    def connection_count(self) -> int:
        """Number of currently registered connections."""
        return len(self._connections)

    @property
    def message_count(self) -> int:
        """Total inbound messages relayed since start."""
        return self._message_count

    @property
    def dropped_count(self) -> int:
        """Deliveries that could not be queued (peer closing, or full under drop-new)."""
        return self._dropped_count

    @property
    def connections(self) -> tuple[Connection, ...]:
        return tuple(self._connections.values())

    # -- Lifecycle events -----------------------------------------------------

    def on_connect(self, peer: Peer, remote: Any = None) -> Connection:
        """Register *peer* in the live set and start its writer.

        Raises:
            RelayFullError: If ``max_connections`` is set and reached.
        """
        if self._max_connections and len(self._connections) >= self._max_connections:
            raise RelayFullError(f"Relay is at its limit of {self._max_connections} connections")

        conn = Connection(
            peer,
            queue_size=self._queue_size,
            overflow=self._overflow,
            remote=remote,
        )
        self._connections[conn.id] = conn
        conn.start()
        logger.info("Client connected: %s (total: %d)", remote, len(self._connections))
        return conn

    def on_message(self, sender: Connection, message: Payload) -> int:
        """Queue *message* for every open connection except *sender*.

        Returns the number of peers the message was queued for.  Never
        blocks and never raises on behalf of a peer.
        """
        self._message_count += 1
        delivered = 0
        for conn in tuple(self._connections.values()):
            if conn is sender:
                continue
            if conn.enqueue(message):
                delivered += 1
            else:
                self._dropped_count += 1
        return delivered

    async def on_close(self, conn: Connection) -> None:
        """Remove *conn* from the live set. Safe to call more than once."""
        if self._connections.pop(conn.id, None) is None:
            return
        await conn.close()
        logger.info("Client disconnected: %s (remaining: %d)", conn.remote, len(self._connections))

    async def serve_peer(
        self,
        peer: Peer,
        messages: AsyncIterable[Payload],
        remote: Any = None,
    ) -> None:
        """Run one peer's whole lifecycle: register, relay inbound, unregister.

        Transport errors end this peer's session only.
        """
        conn = self.on_connect(peer, remote)
        try:
            async for message in messages:
                self.on_message(conn, message)
        except Exception:
            logger.debug("Connection closed: %s", remote, exc_info=True)
        finally:
            await self.on_close(conn)

    async def close(self) -> None:
        """Close every live connection (relay shutdown)."""
        for conn in tuple(self._connections.values()):
            with contextlib.suppress(Exception):
                await conn.peer.close()
            await self.on_close(conn)
