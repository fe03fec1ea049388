"""Decode sensor wire payloads into raw samples.

Two payload layouts are understood:

* **structured** — a JSON object::

      {"angle": 45, "distance": 120}          # polar
      {"angle": 45, "distance": 120, "elevation": 2}
      {"x": 10, "y": 5, "z": 0}               # cartesian

* **delimited** — comma-separated numbers::

      45,120                                  # polar: angle, distance
      10,5,0                                  # cartesian: x, y[, z]

Which :class:`RawSample` variant is produced depends only on the
configured :class:`SensorModel`, never on the payload itself.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from echomap.errors import DecodeError
from echomap.models.config import PayloadEncoding, SensorModel
from echomap.stream.samples import CartesianSample, PolarSample, RawSample

logger = logging.getLogger(__name__)

_STRUCTURED_MARKER = "{"
_DELIMITER = ","
_MIN_DELIMITED_FIELDS = 2
_POLAR_FIELDS = 2
_CARTESIAN_FIELDS = 3


def detect_encoding(payload: str) -> PayloadEncoding:
    """Classify *payload* by its first non-blank character."""
    if payload.lstrip().startswith(_STRUCTURED_MARKER):
        return PayloadEncoding.STRUCTURED
    return PayloadEncoding.DELIMITED


def _as_number(key: str, value: Any) -> float:
    """Coerce a record value to a finite float or raise :class:`DecodeError`."""
    # bool is an int subclass; a flag is not a measurement.
    if isinstance(value, bool):
        raise DecodeError(f"Field {key!r} is not numeric: {value!r}")
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            raise DecodeError(f"Field {key!r} is not numeric: {value!r}") from None
    else:
        raise DecodeError(f"Field {key!r} is not numeric: {value!r}")
    if not math.isfinite(number):
        raise DecodeError(f"Field {key!r} is not finite: {value!r}")
    return number


class StreamDecoder:
    """Turns one text payload into a :class:`RawSample` for the active model.

    Parameters:
        model: Sensor model that selects the sample variant.
        encoding: Declared payload layout. ``AUTO`` sniffs each payload.
    """

    def __init__(
        self,
        model: SensorModel = SensorModel.POLAR,
        encoding: PayloadEncoding = PayloadEncoding.AUTO,
    ) -> None:
        self.model = SensorModel(model)
        self.encoding = PayloadEncoding(encoding)

    def decode(
        self,
        payload: str | bytes,
        encoding: PayloadEncoding | None = None,
    ) -> RawSample:
        """Decode a single wire payload.

        Args:
            payload: The raw frame. Bytes are decoded as UTF-8.
            encoding: Per-call override of the configured encoding.

        Returns:
            A :class:`PolarSample` or :class:`CartesianSample` matching
            :attr:`model`.

        Raises:
            DecodeError: If the payload is malformed or lacks the fields
                the active model needs.
        """
        if isinstance(payload, bytes | bytearray):
            try:
                payload = bytes(payload).decode("utf-8")
            except UnicodeDecodeError:
                raise DecodeError("Payload is not valid UTF-8", payload) from None

        text = payload.strip()
        if not text:
            raise DecodeError("Empty payload", payload)

        layout = PayloadEncoding(encoding) if encoding is not None else self.encoding
        if layout is PayloadEncoding.AUTO:
            layout = detect_encoding(text)

        try:
            if layout is PayloadEncoding.STRUCTURED:
                return self._decode_structured(text)
            return self._decode_delimited(text)
        except DecodeError as exc:
            exc.payload = payload
            raise

    def try_decode(
        self,
        payload: str | bytes,
        encoding: PayloadEncoding | None = None,
    ) -> RawSample | None:
        """Like :meth:`decode` but returns ``None`` on a bad payload."""
        try:
            return self.decode(payload, encoding)
        except DecodeError as exc:
            logger.debug("Rejected payload %r: %s", _excerpt(payload), exc)
            return None

    # -- Structured -----------------------------------------------------------

    def _decode_structured(self, text: str) -> RawSample:
        try:
            record = json.loads(text)
        except (json.JSONDecodeError, RecursionError) as exc:
            raise DecodeError(f"Malformed structured payload: {exc}") from None

        if not isinstance(record, dict):
            raise DecodeError(
                f"Structured payload must be an object, got {type(record).__name__}"
            )

        if self.model is SensorModel.POLAR:
            return self._polar_from_record(record)
        return self._cartesian_from_record(record)

    @staticmethod
    def _polar_from_record(record: dict[str, Any]) -> PolarSample:
        missing = [k for k in ("angle", "distance") if record.get(k) is None]
        if missing:
            raise DecodeError(f"Polar record missing {', '.join(missing)}")

        elevation = record.get("elevation")
        return PolarSample(
            angle=_as_number("angle", record["angle"]),
            distance=_as_number("distance", record["distance"]),
            elevation=_as_number("elevation", elevation) if elevation is not None else None,
        )

    @staticmethod
    def _cartesian_from_record(record: dict[str, Any]) -> CartesianSample:
        # Absent axes sit on the origin plane; no axis is required.
        coords = {
            k: _as_number(k, record[k]) if record.get(k) is not None else 0.0
            for k in ("x", "y", "z")
        }
        return CartesianSample(**coords)

    # -- Delimited ------------------------------------------------------------

    def _decode_delimited(self, text: str) -> RawSample:
        parts = [p.strip() for p in text.split(_DELIMITER)]
        if len(parts) < _MIN_DELIMITED_FIELDS:
            raise DecodeError(
                f"Delimited payload needs at least {_MIN_DELIMITED_FIELDS} values, "
                f"got {len(parts)}"
            )

        # Trailing values beyond what the model reads are never parsed.
        used = _POLAR_FIELDS if self.model is SensorModel.POLAR else _CARTESIAN_FIELDS
        numbers = [_as_number(f"#{i}", p) for i, p in enumerate(parts[:used])]

        if self.model is SensorModel.POLAR:
            return PolarSample(angle=numbers[0], distance=numbers[1])
        z = numbers[2] if len(numbers) > 2 else 0.0
        return CartesianSample(x=numbers[0], y=numbers[1], z=z)


def _excerpt(payload: str | bytes, limit: int = 80) -> str | bytes:
    return payload[:limit]
