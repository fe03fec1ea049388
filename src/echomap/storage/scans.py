"""Filesystem scan store.

Each scan is one file in the scans directory; its filename is its
identity.  JSON scans hold an array of ``{"x", "y", "z"}`` objects in
sensor units; PLY files dropped into the directory hold display units
(as exported by the viewer) and are scaled up to sensor units on load.
Stored scans are never overwritten: a name collision gets
a numeric suffix.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from echomap.errors import PersistenceError, PlyFormatError, ScanNotFoundError
from echomap.export.ply import load_ply
from echomap.models.scan import ScanInfo, ScanPoint
from echomap.stream.transform import SCALE

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

SCAN_SUFFIXES = (".json", ".ply")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\-_.]")

# Upper bound on collision suffixes tried before giving up.
_MAX_SUFFIX = 10_000


def sanitize_name(name: str) -> str:
    """Replace anything outside ``[A-Za-z0-9-_.]`` with ``_`` and add ``.json``.

    Leading dots are stripped so a name can never be hidden or relative.
    """
    safe = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    if not safe:
        raise PersistenceError(f"Invalid scan name: {name!r}", status_code=400)
    if not safe.lower().endswith(".json"):
        safe += ".json"
    return safe


def _as_scan_point(p: Any) -> ScanPoint:
    if isinstance(p, ScanPoint):
        return p
    if isinstance(p, dict):
        return ScanPoint.model_validate(p)
    x, y, z = p
    return ScanPoint(x=x, y=y, z=z)


class ScanStore:
    """Reads and writes scans under *directory*, creating it on demand."""

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._dir

    def _ensure_dir(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create scans directory {self._dir}: {exc}") from exc

    def _resolve(self, stored_name: str) -> Path:
        """Map a stored name to a path inside the store, refusing traversal."""
        if not stored_name or stored_name != Path(stored_name).name or stored_name.startswith("."):
            raise ScanNotFoundError(f"Scan not found: {stored_name}", status_code=404)
        return self._dir / stored_name

    # -- Queries --------------------------------------------------------------

    def list_scans(self) -> list[ScanInfo]:
        """Return every stored scan, newest first by modification time."""
        if not self._dir.exists():
            return []
        scans: list[ScanInfo] = []
        try:
            for path in self._dir.iterdir():
                if not path.is_file() or path.suffix.lower() not in SCAN_SUFFIXES:
                    continue
                stat = path.stat()
                scans.append(
                    ScanInfo(
                        name=path.name,
                        size=stat.st_size,
                        date=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                    )
                )
        except OSError as exc:
            raise PersistenceError(f"Failed to retrieve scans: {exc}") from exc
        scans.sort(key=lambda s: s.date, reverse=True)
        return scans

    def load_scan(self, stored_name: str) -> list[ScanPoint]:
        """Return the positions stored under *stored_name*, in saved order."""
        path = self._resolve(stored_name)
        if not path.is_file():
            raise ScanNotFoundError(f"Scan not found: {stored_name}", status_code=404)

        try:
            if path.suffix.lower() == ".ply":
                # PLY files hold display units; served scans are sensor units.
                return [
                    ScanPoint(x=x * SCALE, y=y * SCALE, z=z * SCALE)
                    for x, y, z in load_ply(path)
                ]
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise PersistenceError(f"Scan {stored_name} is not a point array")
            return [ScanPoint.model_validate(p) for p in raw]
        except (OSError, json.JSONDecodeError, ValidationError, PlyFormatError) as exc:
            raise PersistenceError(f"Failed to load scan {stored_name}: {exc}") from exc

    # -- Writes ---------------------------------------------------------------

    def save_scan(self, name: str, points: Iterable[Any]) -> str:
        """Persist *points* under a sanitized, collision-free version of *name*.

        *points* may be :class:`ScanPoint`, ``{"x", "y", "z"}`` dicts, or
        ``(x, y, z)`` tuples.  Returns the stored filename.
        """
        safe = sanitize_name(name)
        try:
            body = json.dumps([_as_scan_point(p).model_dump() for p in points])
        except (TypeError, ValueError, ValidationError) as exc:
            raise PersistenceError(f"Invalid scan data: {exc}", status_code=400) from exc

        self._ensure_dir()
        stem, suffix = Path(safe).stem, Path(safe).suffix
        for n in range(_MAX_SUFFIX):
            candidate = safe if n == 0 else f"{stem}-{n}{suffix}"
            path = self._dir / candidate
            try:
                # "x" mode never clobbers an existing scan.
                with open(path, "x", encoding="utf-8") as fh:
                    fh.write(body)
            except FileExistsError:
                continue
            except OSError as exc:
                raise PersistenceError(f"Failed to save scan: {exc}") from exc
            logger.info("Saved scan: %s", candidate)
            return candidate

        raise PersistenceError(f"Too many scans named {safe}")
