"""HTTP client for the relay's scan API (``/api/scans``)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlsplit, urlunsplit

import httpx
from pydantic import TypeAdapter, ValidationError

from echomap.errors import PersistenceError, ScanNotFoundError
from echomap.models.scan import SaveScanResult, ScanInfo, ScanPoint

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0

_SCAN_LIST = TypeAdapter(list[ScanInfo])
_POINT_LIST = TypeAdapter(list[ScanPoint])


def http_base_from_ws(url: str) -> str:
    """Derive the HTTP base URL served alongside a relay WebSocket URL.

    ``ws://host:3000/`` → ``http://host:3000``, ``wss://`` → ``https://``.
    """
    parts = urlsplit(url)
    scheme = {"ws": "http", "wss": "https"}.get(parts.scheme, parts.scheme)
    return urlunsplit((scheme, parts.netloc, "", "", "")).rstrip("/")


class ScanGateway:
    """Lists, saves, and loads scans over HTTP.

    Every failure (connection, non-2xx status, unexpected body) is raised
    as :class:`PersistenceError`, distinct from relay transport errors.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> ScanGateway:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise PersistenceError(f"{method} {url} failed: {exc}") from exc

        if resp.status_code == 404:
            raise ScanNotFoundError(f"Not found: {path}", status_code=404)
        if resp.is_error:
            detail = resp.text[:200]
            try:
                detail = resp.json().get("error", detail)
            except (ValueError, AttributeError):
                pass
            raise PersistenceError(
                f"{method} {path} returned {resp.status_code}: {detail}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise PersistenceError(f"{method} {path} returned a non-JSON body") from exc

    async def list_scans(self) -> list[ScanInfo]:
        """Return stored scans, newest first."""
        body = await self._request("GET", "/api/scans")
        try:
            return _SCAN_LIST.validate_python(body)
        except ValidationError as exc:
            raise PersistenceError(f"Unexpected scan listing: {exc}") from exc

    async def save_scan(self, name: str, points: Iterable[tuple[float, float, float]]) -> str:
        """Upload *points* as a scan. Returns the name the server stored it under."""
        data = [{"x": x, "y": y, "z": z} for x, y, z in points]
        body = await self._request("POST", "/api/scans", json={"filename": name, "data": data})
        try:
            result = SaveScanResult.model_validate(body)
        except ValidationError as exc:
            raise PersistenceError(f"Unexpected save response: {exc}") from exc
        logger.info("Saved %d points to server as %s", len(data), result.filename)
        return result.filename

    async def load_scan(self, stored_name: str) -> list[ScanPoint]:
        """Fetch the positions of *stored_name*."""
        body = await self._request("GET", f"/api/scans/{quote(stored_name, safe='')}")
        try:
            return _POINT_LIST.validate_python(body)
        except ValidationError as exc:
            raise PersistenceError(f"Scan {stored_name} is not a point array") from exc
