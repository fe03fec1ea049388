"""ASGI app combining the relay WebSocket and the scan REST API.

Routes:

* ``websocket /``              — broadcast relay (any client may send)
* ``GET  /api/scans``          — list stored scans, newest first
* ``POST /api/scans``          — save ``{"filename", "data": [{x,y,z}, ...]}``
* ``GET  /api/scans/{name}``   — stored scan as a JSON point array

Filesystem work runs in Starlette's threadpool so a slow disk never
stalls relay traffic on the event loop.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocketDisconnect

from echomap.errors import PersistenceError, ScanNotFoundError
from echomap.models.scan import SaveScanRequest, SaveScanResult
from echomap.relay.hub import BroadcastRelay, RelayFullError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from echomap.storage.scans import ScanStore

logger = logging.getLogger(__name__)

_CLOSE_TRY_AGAIN = 1013


class _StarletteWebSocketPeer:
    """Adapts a Starlette :class:`WebSocket` to the relay's ``Peer`` protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket

    async def send(self, message: str | bytes) -> None:
        if isinstance(message, bytes):
            await self._ws.send_bytes(message)
        else:
            await self._ws.send_text(message)

    async def close(self) -> None:
        await self._ws.close()

    async def messages(self) -> AsyncIterator[str | bytes]:
        """Yield inbound text/binary frames until the client disconnects."""
        while True:
            event = await self._ws.receive()
            if event["type"] == "websocket.disconnect":
                return
            text = event.get("text")
            if text is not None:
                yield text
                continue
            data = event.get("bytes")
            if data is not None:
                yield data


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(relay: BroadcastRelay, store: ScanStore) -> Starlette:
    """Build the combined relay + scan API application."""

    async def relay_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        client = websocket.client
        remote = (client.host, client.port) if client else ("unknown", 0)
        peer = _StarletteWebSocketPeer(websocket)
        try:
            await relay.serve_peer(peer, peer.messages(), remote)
        except RelayFullError as exc:
            logger.warning("Rejecting %s: %s", remote, exc)
            await websocket.close(code=_CLOSE_TRY_AGAIN, reason="relay full")
        except WebSocketDisconnect:
            pass

    async def list_scans(request: Request) -> JSONResponse:
        try:
            scans = await run_in_threadpool(store.list_scans)
        except PersistenceError:
            logger.exception("Failed to list scans")
            return _error("Failed to retrieve scans", 500)
        return JSONResponse([s.model_dump(mode="json") for s in scans])

    async def save_scan(request: Request) -> JSONResponse:
        try:
            body: Any = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error("Body must be JSON", 400)
        if not isinstance(body, dict) or not body.get("filename") or body.get("data") is None:
            return _error("Missing filename or data", 400)
        try:
            req = SaveScanRequest.model_validate(body)
        except ValidationError as exc:
            return _error(f"Invalid scan data: {exc.error_count()} bad field(s)", 400)

        try:
            stored = await run_in_threadpool(store.save_scan, req.filename, req.data)
        except PersistenceError as exc:
            if exc.status_code == 400:
                return _error(str(exc), 400)
            logger.exception("Failed to save scan %s", req.filename)
            return _error("Failed to save scan", 500)
        return JSONResponse(SaveScanResult(filename=stored).model_dump())

    async def load_scan(request: Request) -> JSONResponse:
        name = request.path_params["filename"]
        try:
            points = await run_in_threadpool(store.load_scan, name)
        except ScanNotFoundError:
            return _error("Scan not found", 404)
        except PersistenceError:
            logger.exception("Failed to load scan %s", name)
            return _error("Failed to load scan", 500)
        return JSONResponse([p.model_dump() for p in points])

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Scans directory: %s", store.directory)
        yield
        await relay.close()

    return Starlette(
        routes=[
            WebSocketRoute("/", relay_endpoint),
            Route("/api/scans", list_scans, methods=["GET"]),
            Route("/api/scans", save_scan, methods=["POST"]),
            Route("/api/scans/{filename}", load_scan, methods=["GET"]),
        ],
        middleware=[Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"])],
        lifespan=lifespan,
    )
