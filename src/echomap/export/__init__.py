"""Point-cloud interchange formats."""

from __future__ import annotations

from echomap.export.ply import load_ply, read_ply, save_ply, write_ply

__all__ = ["load_ply", "read_ply", "save_ply", "write_ply"]
