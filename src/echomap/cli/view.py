"""``echomap view`` — headless viewer that accumulates a live point cloud."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import click

from echomap._internal.async_utils import run_async, wait_for_or_timeout
from echomap.models.config import PayloadEncoding, SensorModel

if TYPE_CHECKING:
    from echomap.cli.main import AppContext
    from echomap.viewer.session import ViewerSession

logger = logging.getLogger(__name__)


@click.command("view")
@click.argument("url", required=False, default=None)
@click.option(
    "--model",
    type=click.Choice([m.value for m in SensorModel]),
    default=None,
    help="Sensor model used to interpret samples",
)
@click.option(
    "--encoding",
    type=click.Choice([e.value for e in PayloadEncoding]),
    default=None,
    help="Payload layout (auto sniffs each payload)",
)
@click.option("--capacity", type=click.IntRange(min=1), default=None, help="Point buffer size")
@click.option(
    "--duration",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Stop after this many seconds (default: until the relay closes)",
)
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=1,
    show_default=True,
    help="Connection attempts with backoff (0 = retry forever)",
)
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the collected cloud to a PLY file on exit",
)
@click.option(
    "--save",
    "save_name",
    default=None,
    help="Save the collected cloud to the server under this name on exit",
)
@click.pass_obj
def view_cmd(
    app_ctx: AppContext,
    url: str | None,
    model: str | None,
    encoding: str | None,
    capacity: int | None,
    duration: float | None,
    retries: int,
    export_path: str | None,
    save_name: str | None,
) -> None:
    """Connect to a relay and collect points until it closes.

    URL defaults to $ECHOMAP_RELAY_URL (ws://localhost:3000).

    \b
    Examples:
      echomap view --duration 30 --export room.ply
      echomap view ws://pi.local:3000 --model cartesian --save lab
    """
    from echomap.buffer.points import PointBuffer
    from echomap.stream.decoder import StreamDecoder
    from echomap.viewer.gateway import ScanGateway, http_base_from_ws
    from echomap.viewer.session import ViewerSession

    settings = app_ctx.settings
    relay_url = url or settings.relay_url
    session = ViewerSession(
        relay_url,
        decoder=StreamDecoder(
            SensorModel(model or settings.sensor_model),
            PayloadEncoding(encoding or settings.payload_encoding),
        ),
        buffer=PointBuffer(capacity or settings.buffer_capacity),
        gateway=ScanGateway(http_base_from_ws(relay_url)) if save_name else None,
        on_state_change=lambda state: logger.info("Relay connection %s", state),
    )

    run_async(
        _cmd_view(
            session,
            duration=duration,
            retries=retries,
            export_path=export_path,
            save_name=save_name,
        )
    )

    if export_path:
        app_ctx.formatter.rich.info(f"Exported {len(session.buffer)} points to {export_path}")

    formatter = app_ctx.formatter
    if formatter.format == "json":
        formatter.output(
            {
                "url": session.url,
                "model": str(session.decoder.model),
                "received": session.received_count,
                "points": len(session.buffer),
                "capacity": session.buffer.capacity,
                "decode_failures": session.decode_failure_count,
                "dropped": session.buffer.rejected_count,
            },
            command="view",
        )
    else:
        formatter.rich.session_summary(session)


async def _cmd_view(
    session: ViewerSession,
    *,
    duration: float | None,
    retries: int,
    export_path: str | None,
    save_name: str | None,
) -> None:
    try:
        try:
            await session.connect_with_backoff(max_attempts=retries)
            await wait_for_or_timeout(session.wait_closed(), duration)
        except asyncio.CancelledError:
            # Ctrl+C: keep what was collected and fall through to export/save.
            logger.info("Interrupted; stopping viewer")
        finally:
            await session.close()

        # The local export never depends on the server accepting the save.
        if export_path:
            session.export_ply(export_path)
        if save_name:
            stored = await session.save_scan(save_name)
            logger.info("Saved to server as %s", stored)
    finally:
        if session.gateway is not None:
            await session.gateway.aclose()
