"""Sensor stream decoding and coordinate conversion."""

from __future__ import annotations

from echomap.stream.decoder import StreamDecoder, detect_encoding
from echomap.stream.samples import CartesianSample, PolarSample, RawSample
from echomap.stream.transform import SCALE, Point, color_for, point_from_position, to_point

__all__ = [
    "SCALE",
    "CartesianSample",
    "Point",
    "PolarSample",
    "RawSample",
    "StreamDecoder",
    "color_for",
    "detect_encoding",
    "point_from_position",
    "to_point",
]
