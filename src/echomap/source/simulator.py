"""Simulated ranging sensor.

Produces the sweep a rotating rangefinder would report from the middle
of a square room: one reading per angular step, range to the nearest
wall plus a little noise.  Each full revolution raises the scan plane so
the cloud builds up in layers.  Payloads are emitted in either wire
layout the decoder accepts.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import random
from enum import StrEnum
from typing import TYPE_CHECKING

from echomap.errors import TransportError
from echomap.models.config import SensorModel

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class WireFormat(StrEnum):
    JSON = "json"
    CSV = "csv"


class SweepSimulator:
    """Generates sensor payloads for a room sweep.

    Parameters:
        model: Sensor model to emit readings for.
        wire_format: ``json`` records or ``csv`` lines.
        room_half_width: Distance from sensor to each wall, sensor units.
        step_degrees: Angular step between readings.
        layer_height: Elevation gained per revolution (json/polar and cartesian).
        noise: Standard deviation of range noise, sensor units.
        seed: Seed for reproducible noise.
    """

    def __init__(
        self,
        model: SensorModel = SensorModel.POLAR,
        wire_format: WireFormat = WireFormat.JSON,
        *,
        room_half_width: float = 100.0,
        step_degrees: float = 2.0,
        layer_height: float = 0.5,
        noise: float = 0.5,
        seed: int | None = None,
    ) -> None:
        if step_degrees <= 0:
            raise ValueError("step_degrees must be positive")
        self.model = SensorModel(model)
        self.wire_format = WireFormat(wire_format)
        self._half_width = room_half_width
        self._step = step_degrees
        self._layer_height = layer_height
        self._noise = noise
        self._rng = random.Random(seed)

    def _range_at(self, angle: float) -> float:
        theta = math.radians(angle)
        # Distance from the center of a square to its boundary along theta.
        wall = self._half_width / max(abs(math.cos(theta)), abs(math.sin(theta)))
        return max(0.0, wall + self._rng.gauss(0.0, self._noise))

    def _format(self, fields: dict[str, float]) -> str:
        if self.wire_format is WireFormat.JSON:
            return json.dumps({k: round(v, 3) for k, v in fields.items()})
        return ",".join(f"{v:.3f}" for v in fields.values())

    def payloads(self) -> Iterator[str]:
        """Yield payloads forever, one per angular step."""
        angle = 0.0
        layer = 0
        while True:
            distance = self._range_at(angle)
            elevation = layer * self._layer_height
            if self.model is SensorModel.POLAR:
                fields = {"angle": angle, "distance": distance}
                # The delimited polar layout has no elevation column.
                if self.wire_format is WireFormat.JSON and elevation:
                    fields["elevation"] = elevation
            else:
                theta = math.radians(angle)
                fields = {
                    "x": math.cos(theta) * distance,
                    "y": elevation,
                    "z": math.sin(theta) * distance,
                }
            yield self._format(fields)

            angle += self._step
            if angle >= 360.0:
                angle -= 360.0
                layer += 1


async def stream_to_relay(
    url: str,
    simulator: SweepSimulator,
    *,
    rate: float = 50.0,
    count: int = 0,
) -> int:
    """Send simulated payloads to the relay at *url*.

    Args:
        rate: Payloads per second.
        count: Stop after this many payloads; ``0`` runs until cancelled.

    Returns:
        Number of payloads sent.

    Raises:
        TransportError: If the relay can't be reached or drops the connection.
    """
    import websockets.asyncio.client as ws_client
    from websockets.exceptions import ConnectionClosed

    interval = 1.0 / rate if rate > 0 else 0.0
    sent = 0
    try:
        ws = await ws_client.connect(url)
    except Exception as exc:
        raise TransportError(f"Failed to connect to relay at {url}: {exc}") from exc

    logger.info("Simulating %s sensor (%s) into %s", simulator.model, simulator.wire_format, url)
    try:
        for payload in simulator.payloads():
            if count and sent >= count:
                break
            await ws.send(payload)
            sent += 1
            if interval:
                await asyncio.sleep(interval)
    except ConnectionClosed as exc:
        raise TransportError(f"Relay closed the connection after {sent} payloads") from exc
    finally:
        await ws.close()
        logger.info("Sent %d simulated payloads", sent)
    return sent
