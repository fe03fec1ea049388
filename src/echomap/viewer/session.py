"""Live viewing session: relay connection → decoder → transform → buffer.

Each inbound frame is decoded, converted, and inserted before the next
frame is read.  None of those steps await, so a frame is either fully
applied to the buffer or not at all, even if the session is closed
mid-stream.

Connection loss is reported once, as a transition to
:attr:`ConnectionState.DISCONNECTED`.  Repeated :meth:`close` calls are
no-ops.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from echomap.buffer.points import PointBuffer
from echomap.errors import DecodeError, PersistenceError, PlyFormatError, TransportError
from echomap.export.ply import load_ply, save_ply
from echomap.stream.decoder import StreamDecoder
from echomap.stream.samples import CartesianSample
from echomap.stream.transform import SCALE, Point, point_from_position, to_point

if TYPE_CHECKING:
    from collections.abc import Callable

    from echomap.models.scan import ScanInfo
    from echomap.viewer.gateway import ScanGateway

logger = logging.getLogger(__name__)

_BACKOFF_BASE = 1.0
_BACKOFF_MAX = 60.0
_BACKOFF_FACTOR = 2.0

_OPEN_TIMEOUT = 10.0


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def default_scan_name(now: datetime | None = None) -> str:
    """``scan_2026-10-19T12-34-56-789Z.json``-style name for a new scan."""
    now = now or datetime.now(UTC)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    return f"scan_{stamp}.json"


class ViewerSession:
    """Owns one viewer's relay connection, decoder, and point buffer.

    Parameters:
        url: Relay WebSocket URL.
        decoder: Configured :class:`StreamDecoder`.
        buffer: Point store; a default-capacity one is created if omitted.
        gateway: Scan API client for :meth:`save_scan` / :meth:`load_scan`.
        scale: Unit-conversion constant for the coordinate transform.
        on_state_change: Called with the new state on every transition.
    """

    def __init__(
        self,
        url: str,
        *,
        decoder: StreamDecoder | None = None,
        buffer: PointBuffer | None = None,
        gateway: ScanGateway | None = None,
        scale: float = SCALE,
        on_state_change: Callable[[ConnectionState], None] | None = None,
    ) -> None:
        self._url = url
        self.decoder = decoder or StreamDecoder()
        self.buffer = buffer or PointBuffer()
        self._gateway = gateway
        self._scale = scale
        self._on_state_change = on_state_change
        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._recv_task: asyncio.Task[None] | None = None
        self._save_lock = asyncio.Lock()
        self._received = 0
        self._accepted = 0
        self._decode_failures = 0
        self._last_message_at: datetime | None = None

    # -- Properties -----------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def gateway(self) -> ScanGateway | None:
        return self._gateway

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def received_count(self) -> int:
        """Frames read from the relay (or passed to :meth:`ingest`)."""
        return self._received

    @property
    def accepted_count(self) -> int:
        """Frames that produced a point stored in the buffer."""
        return self._accepted

    @property
    def decode_failure_count(self) -> int:
        return self._decode_failures

    @property
    def last_message_at(self) -> datetime | None:
        return self._last_message_at

    @property
    def save_in_progress(self) -> bool:
        return self._save_lock.locked()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                logger.warning("State-change callback failed", exc_info=True)

    # -- Stream processing ----------------------------------------------------

    def ingest(self, payload: str | bytes) -> Point | None:
        """Decode, convert, and store one payload.

        Returns the stored point, or ``None`` if the payload was rejected
        or the buffer is full.  Decode failures are logged, never raised.
        """
        self._received += 1
        self._last_message_at = datetime.now(UTC)
        try:
            sample = self.decoder.decode(payload)
        except DecodeError as exc:
            self._decode_failures += 1
            logger.warning("Data parse error: %s", exc)
            logger.debug("Rejected payload: %r", payload[:200])
            return None

        point = to_point(sample, self._scale)
        if not self.buffer.insert(point):
            return None
        self._accepted += 1
        return point

    def clear(self) -> None:
        """Empty the point buffer."""
        self.buffer.clear()
        logger.info("Map cleared.")

    # -- Connection lifecycle -------------------------------------------------

    async def connect(self) -> None:
        """Open the relay connection and start the receive loop.

        Raises :class:`TransportError` if the relay cannot be reached.
        """
        import websockets.asyncio.client as ws_client

        if self._state is not ConnectionState.DISCONNECTED:
            return

        # A dropped connection leaves its socket behind until the next connect.
        await self._discard_socket()
        self._set_state(ConnectionState.CONNECTING)
        logger.info("Connecting to %s...", self._url)
        try:
            self._ws = await ws_client.connect(self._url, open_timeout=_OPEN_TIMEOUT)
        except Exception as exc:
            self._set_state(ConnectionState.DISCONNECTED)
            raise TransportError(f"Failed to connect to relay at {self._url}: {exc}") from exc

        self._set_state(ConnectionState.CONNECTED)
        logger.info("Connected to relay at %s", self._url)
        self._recv_task = asyncio.create_task(self._receive_loop())

    async def _receive_loop(self) -> None:
        assert self._ws is not None
        try:
            async for message in self._ws:
                self.ingest(message)
        except asyncio.CancelledError:
            raise
        except Exception:
            # ConnectionClosedError and other transport failures
            logger.debug("Receive loop error", exc_info=True)
        finally:
            if self._state is not ConnectionState.DISCONNECTED:
                logger.info("Disconnected from relay at %s", self._url)
            self._set_state(ConnectionState.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Block until the connection ends (or return at once if not connected)."""
        if self._recv_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._recv_task

    async def run(self) -> None:
        """Connect and process frames until the relay closes the connection."""
        await self.connect()
        await self.wait_closed()

    async def close(self) -> None:
        """Close the relay connection. Idempotent."""
        if self._recv_task is not None and not self._recv_task.done():
            self._recv_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._recv_task
        self._recv_task = None
        await self._discard_socket()
        self._set_state(ConnectionState.DISCONNECTED)

    async def _discard_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()

    async def connect_with_backoff(self, *, max_attempts: int = 0) -> None:
        """Connect with exponential backoff retry.

        Parameters
        ----------
        max_attempts:
            Maximum connection attempts. ``0`` means infinite.
        """
        attempt = 0
        backoff = _BACKOFF_BASE

        while max_attempts == 0 or attempt < max_attempts:
            attempt += 1
            try:
                await self.connect()
                return
            except TransportError as exc:
                if max_attempts > 0 and attempt >= max_attempts:
                    raise
                jitter = random.uniform(0, backoff * 0.1)
                wait = min(backoff + jitter, _BACKOFF_MAX)
                logger.info(
                    "Connection attempt %d failed: %s; retrying in %.1fs",
                    attempt,
                    exc,
                    wait,
                )
                await asyncio.sleep(wait)
                backoff = min(backoff * _BACKOFF_FACTOR, _BACKOFF_MAX)

    # -- Persistence ----------------------------------------------------------

    def _require_gateway(self) -> ScanGateway:
        if self._gateway is None:
            raise PersistenceError("No scan gateway configured")
        return self._gateway

    async def save_scan(self, name: str | None = None) -> str:
        """Upload the buffer's current contents. Returns the stored name.

        Positions are sent in sensor units (display × scale) so that
        :meth:`load_scan` reproduces them.  Concurrent calls are
        serialized; the buffer keeps accepting points meanwhile.
        """
        gateway = self._require_gateway()
        async with self._save_lock:
            snapshot = self.buffer.snapshot()
            if not snapshot:
                raise PersistenceError("No points to save.")
            s = self._scale
            raw = [(x * s, y * s, z * s) for x, y, z in snapshot.positions()]
            logger.info("Saving %d points to server...", len(raw))
            return await gateway.save_scan(name or default_scan_name(), raw)

    async def load_scan(self, stored_name: str) -> int:
        """Replace the buffer with a stored scan. Returns points inserted.

        Colors are recomputed.  On failure the buffer is left untouched.
        """
        gateway = self._require_gateway()
        logger.info("Loading %s...", stored_name)
        points = await gateway.load_scan(stored_name)
        self.buffer.clear()
        inserted = self.buffer.extend(
            to_point(CartesianSample(p.x, p.y, p.z), self._scale) for p in points
        )
        logger.info("Loaded %d points.", inserted)
        return inserted

    async def list_scans(self) -> list[ScanInfo]:
        return await self._require_gateway().list_scans()

    def export_ply(self, path: Path | str) -> Path:
        """Write the buffer's current contents to a PLY file."""
        return save_ply(self.buffer.snapshot(), path)

    def import_ply(self, path: Path | str) -> int:
        """Replace the buffer with the positions in a PLY file."""
        try:
            positions = load_ply(Path(path))
        except (OSError, PlyFormatError) as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc
        self.buffer.clear()
        inserted = self.buffer.extend(point_from_position(*pos) for pos in positions)
        logger.info("Imported %d points from %s", inserted, path)
        return inserted
