"""JSON envelopes for ``--format json``.

Every command prints exactly one object to stdout::

    {"ok": true,  "command": "scans.list", "data": ...,  "timestamp": "..."}
    {"ok": false, "command": "view", "error": {"code": ..., "message": ...}, "timestamp": "..."}
"""

from __future__ import annotations

import dataclasses
import enum
import json
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel

from echomap.buffer.points import PointSnapshot
from echomap.stream.transform import Point


def _serialize(obj: Any) -> Any:
    """Reduce *obj* to plain JSON types.

    Points become ``{"position": [...], "color": [...]}``; a snapshot
    becomes its list of points.  Pydantic models are dumped in JSON mode so
    datetimes come out as ISO-8601 strings.
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", exclude_none=True)
    if isinstance(obj, Point):
        return {"position": list(obj.position), "color": list(obj.color)}
    if isinstance(obj, PointSnapshot):
        return [_serialize(p) for p in obj]
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _serialize(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, PurePath):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): _serialize(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [_serialize(item) for item in obj]
    return obj


def _dump(ok: bool, command: str, **body: Any) -> str:
    envelope: dict[str, Any] = {"ok": ok, "command": command, **body}
    envelope["timestamp"] = datetime.now(UTC).isoformat()
    return json.dumps(envelope, indent=2, default=str)


def format_json_response(*, data: Any, command: str) -> str:
    return _dump(True, command, data=_serialize(data))


def format_json_error(*, code: str, message: str, command: str, **extra: Any) -> str:
    """Error envelope; *extra* keys are merged into the ``error`` object."""
    return _dump(False, command, error={"code": code, "message": message, **extra})
