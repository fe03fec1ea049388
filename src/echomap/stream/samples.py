"""Raw, model-specific sensor measurements before coordinate conversion."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PolarSample:
    """A sweep reading: bearing in degrees, range in sensor units."""

    angle: float
    distance: float
    elevation: float | None = None


@dataclass(frozen=True)
class CartesianSample:
    """A direct position reading in sensor units."""

    x: float
    y: float
    z: float = 0.0


RawSample = PolarSample | CartesianSample
