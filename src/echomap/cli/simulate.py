"""``echomap simulate`` — feed a relay with a simulated sensor sweep."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from echomap._internal.async_utils import run_async
from echomap.models.config import SensorModel
from echomap.source.simulator import WireFormat

if TYPE_CHECKING:
    from echomap.cli.main import AppContext


@click.command("simulate")
@click.argument("url", required=False, default=None)
@click.option(
    "--model",
    type=click.Choice([m.value for m in SensorModel]),
    default=None,
    help="Sensor model to emit (default: $ECHOMAP_SENSOR_MODEL or polar)",
)
@click.option(
    "--wire",
    "wire_format",
    type=click.Choice([f.value for f in WireFormat]),
    default=WireFormat.JSON.value,
    show_default=True,
    help="Payload layout",
)
@click.option(
    "--rate",
    type=click.FloatRange(min=0, min_open=True),
    default=50.0,
    show_default=True,
    help="Payloads per second",
)
@click.option(
    "--count",
    type=click.IntRange(min=0),
    default=0,
    help="Stop after N payloads (0 = run until interrupted)",
)
@click.option(
    "--step",
    type=click.FloatRange(min=0, min_open=True),
    default=2.0,
    show_default=True,
    help="Degrees between readings",
)
@click.option("--seed", type=int, default=None, help="Noise seed for reproducible sweeps")
@click.pass_obj
def simulate_cmd(
    app_ctx: AppContext,
    url: str | None,
    model: str | None,
    wire_format: str,
    rate: float,
    count: int,
    step: float,
    seed: int | None,
) -> None:
    """Stream a simulated room sweep into a relay.

    URL defaults to $ECHOMAP_RELAY_URL (ws://localhost:3000).

    \b
    Examples:
      echomap simulate
      echomap simulate --model cartesian --wire csv --count 1000
    """
    from echomap.source.simulator import SweepSimulator, stream_to_relay

    settings = app_ctx.settings
    relay_url = url or settings.relay_url
    simulator = SweepSimulator(
        SensorModel(model or settings.sensor_model),
        WireFormat(wire_format),
        step_degrees=step,
        seed=seed,
    )
    sent = run_async(stream_to_relay(relay_url, simulator, rate=rate, count=count))

    app_ctx.formatter.output({"url": relay_url, "sent": sent}, command="simulate")
