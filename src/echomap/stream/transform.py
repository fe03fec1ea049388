"""Map raw samples into display-space points.

Both sensor models share one unit-conversion constant (:data:`SCALE`),
so a cartesian reading of ``(10, 5, 0)`` and a polar reading with the
same planar range land at the same display distance.

Color is a pure function of the planar ``(x, z)`` position: hue starts
at blue (0.6) at the origin and walks toward red as distance grows.
"""

from __future__ import annotations

import colorsys
import math
from dataclasses import dataclass

from echomap.stream.samples import CartesianSample, PolarSample, RawSample

SCALE = 10.0

_BASE_HUE = 0.6
_HUE_FALLOFF = 100.0
_SATURATION = 1.0
_LIGHTNESS = 0.5


@dataclass(frozen=True)
class Point:
    """One accepted sample in display units with its derived color."""

    position: tuple[float, float, float]
    color: tuple[float, float, float]

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    @property
    def z(self) -> float:
        return self.position[2]


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def color_for(x: float, z: float) -> tuple[float, float, float]:
    """Return the RGB color (each in ``[0, 1]``) for a planar position.

    Elevation never affects color. Hue is clamped, not wrapped.
    """
    planar = math.hypot(x, z)
    hue = _clamp(_BASE_HUE - planar / _HUE_FALLOFF)
    # colorsys takes (h, l, s), not (h, s, l).
    return colorsys.hls_to_rgb(hue, _LIGHTNESS, _SATURATION)


def to_position(sample: RawSample, scale: float = SCALE) -> tuple[float, float, float]:
    """Convert *sample* to a display-space ``(x, y, z)``."""
    if isinstance(sample, PolarSample):
        theta = math.radians(sample.angle)
        reach = sample.distance / scale
        y = sample.elevation if sample.elevation is not None else 0.0
        return (math.cos(theta) * reach, float(y), math.sin(theta) * reach)
    if isinstance(sample, CartesianSample):
        return (sample.x / scale, sample.y / scale, sample.z / scale)
    raise TypeError(f"Unsupported sample type: {type(sample).__name__}")


def point_from_position(x: float, y: float, z: float) -> Point:
    """Build a :class:`Point` from an already display-space position."""
    return Point(position=(float(x), float(y), float(z)), color=color_for(x, z))


def to_point(sample: RawSample, scale: float = SCALE) -> Point:
    """Convert *sample* to a colored :class:`Point`."""
    return point_from_position(*to_position(sample, scale))
