"""Point accumulation for rendering and export."""

from __future__ import annotations

from echomap.buffer.points import PointBuffer, PointSnapshot

__all__ = ["PointBuffer", "PointSnapshot"]
