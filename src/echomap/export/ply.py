"""ASCII PLY point-cloud export and import.

Output format::

    ply
    format ascii 1.0
    element vertex 2
    property float x
    property float y
    property float z
    property uchar red
    property uchar green
    property uchar blue
    end_header
    0.1 0.2 0.3 0 102 255
    1.0 0.5 0.0 0 99 255

Positions are written with ``repr`` so a read-back reproduces them
exactly. Colors are ``floor(c * 255)``.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import IO, TYPE_CHECKING

from echomap.errors import PlyFormatError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from echomap.stream.transform import Point

logger = logging.getLogger(__name__)

_VERTEX_PROPERTIES = (
    ("float", "x"),
    ("float", "y"),
    ("float", "z"),
    ("uchar", "red"),
    ("uchar", "green"),
    ("uchar", "blue"),
)


def _channel(value: float) -> int:
    return max(0, min(255, math.floor(value * 255)))


def build_header(count: int) -> str:
    lines = ["ply", "format ascii 1.0", f"element vertex {count}"]
    lines += [f"property {kind} {name}" for kind, name in _VERTEX_PROPERTIES]
    lines.append("end_header")
    return "\n".join(lines) + "\n"


def write_ply(points: Sequence[Point], fh: IO[str]) -> int:
    """Write *points* to the text stream *fh*. Returns the vertex count."""
    fh.write(build_header(len(points)))
    for p in points:
        x, y, z = p.position
        r, g, b = (_channel(c) for c in p.color)
        fh.write(f"{float(x)!r} {float(y)!r} {float(z)!r} {r} {g} {b}\n")
    return len(points)


def save_ply(points: Sequence[Point], path: Path | str) -> Path:
    """Write *points* to *path*, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="ascii", newline="\n") as fh:
        count = write_ply(points, fh)
    logger.info("Exported %d points to %s", count, path)
    return path


def _parse_header(lines: Iterable[str]) -> tuple[int, list[str]]:
    """Consume header lines; return ``(vertex_count, vertex_property_names)``."""
    it = iter(lines)
    if next(it, "").strip() != "ply":
        raise PlyFormatError("Missing 'ply' magic line")

    vertex_count: int | None = None
    properties: list[str] = []
    current: str | None = None
    for raw in it:
        parts = raw.split()
        if not parts or parts[0] == "comment":
            continue
        keyword = parts[0]
        if keyword == "end_header":
            break
        if keyword == "format":
            if parts[1:2] != ["ascii"]:
                raise PlyFormatError(f"Unsupported PLY format: {' '.join(parts[1:])}")
        elif keyword == "element":
            if len(parts) != 3:
                raise PlyFormatError(f"Bad element line: {raw.strip()}")
            current = parts[1]
            if current == "vertex":
                if vertex_count is not None:
                    raise PlyFormatError("Duplicate vertex element")
                try:
                    vertex_count = int(parts[2])
                except ValueError:
                    raise PlyFormatError(f"Bad vertex count: {parts[2]}") from None
            elif vertex_count is None:
                raise PlyFormatError("Vertex element must come first")
        elif keyword == "property" and current == "vertex":
            properties.append(parts[-1])
    else:
        raise PlyFormatError("Missing end_header")

    if vertex_count is None:
        raise PlyFormatError("No vertex element")
    for axis in ("x", "y", "z"):
        if axis not in properties:
            raise PlyFormatError(f"Vertex element has no {axis!r} property")
    return vertex_count, properties


def read_ply(fh: IO[str]) -> list[tuple[float, float, float]]:
    """Parse an ASCII PLY stream into vertex positions, in file order.

    Color channels are ignored; callers recompute colors.
    """
    vertex_count, properties = _parse_header(iter(fh.readline, ""))
    ix, iy, iz = (properties.index(a) for a in ("x", "y", "z"))

    positions: list[tuple[float, float, float]] = []
    for _ in range(vertex_count):
        line = fh.readline()
        if not line:
            raise PlyFormatError(
                f"Expected {vertex_count} vertices, file ended after {len(positions)}"
            )
        values = line.split()
        if len(values) < len(properties):
            raise PlyFormatError(f"Short vertex line: {line.strip()}")
        try:
            positions.append((float(values[ix]), float(values[iy]), float(values[iz])))
        except ValueError:
            raise PlyFormatError(f"Non-numeric vertex line: {line.strip()}") from None
    return positions


def load_ply(path: Path | str) -> list[tuple[float, float, float]]:
    """Read vertex positions from the PLY file at *path*."""
    with open(path, encoding="ascii") as fh:
        return read_ply(fh)
