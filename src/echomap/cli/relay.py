"""``echomap relay`` — run the broadcast relay and scan API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import click

from echomap._internal.async_utils import run_async
from echomap.models.config import OverflowPolicy

if TYPE_CHECKING:
    from echomap.cli.main import AppContext
    from echomap.relay.hub import BroadcastRelay

logger = logging.getLogger(__name__)


@click.command("relay")
@click.option("--host", default=None, help="Bind address (default: 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Listen port (default: $PORT or 3000)")
@click.option(
    "--scans-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for saved scans (default: ./scans)",
)
@click.option(
    "--queue-size",
    type=click.IntRange(min=1),
    default=None,
    help="Per-client outbound queue bound",
)
@click.option(
    "--overflow",
    type=click.Choice([p.value for p in OverflowPolicy]),
    default=None,
    help="What a full client queue drops",
)
@click.option(
    "--max-connections",
    type=click.IntRange(min=0),
    default=None,
    help="Connection cap (0 = unlimited)",
)
@click.option(
    "--no-api",
    is_flag=True,
    default=False,
    help="Relay only — skip the /api/scans endpoints",
)
@click.pass_obj
def relay_cmd(
    app_ctx: AppContext,
    host: str | None,
    port: int | None,
    scans_dir: str | None,
    queue_size: int | None,
    overflow: str | None,
    max_connections: int | None,
    no_api: bool,
) -> None:
    """Start the WebSocket relay.

    Every message a client sends is forwarded to every other connected
    client.  Sensors and viewers connect to the same endpoint.  Unless
    --no-api is given, the scan gallery API is served on the same port.

    \b
    Examples:
      echomap relay                      # ws + api on 0.0.0.0:3000
      echomap relay --port 8080 --scans-dir ~/scans
      echomap relay --no-api --overflow drop-oldest
    """
    from echomap.relay.hub import BroadcastRelay

    settings = app_ctx.settings
    if max_connections is None:
        max_connections = settings.max_connections
    relay = BroadcastRelay(
        queue_size=queue_size or settings.queue_size,
        overflow=OverflowPolicy(overflow or settings.overflow),
        max_connections=max_connections,
    )
    bind_host = host or settings.host
    bind_port = port if port is not None else settings.port

    if no_api:
        run_async(_serve_relay_only(relay, bind_host, bind_port))
        return

    _serve_with_api(relay, bind_host, bind_port, scans_dir or settings.scans_dir)


async def _serve_relay_only(relay: BroadcastRelay, host: str, port: int) -> None:
    from echomap.relay.server import RelayServer

    server = RelayServer(relay, port=port, host=host)
    await server.start()
    click.echo(f">>> EchoMap relay running on ws://{host}:{server.port}", err=True)
    try:
        await server.serve_forever()
    finally:
        await server.stop()


def _serve_with_api(relay: BroadcastRelay, host: str, port: int, scans_dir: str) -> None:
    import uvicorn

    from echomap.relay.app import create_app
    from echomap.storage.scans import ScanStore

    app = create_app(relay, ScanStore(scans_dir))
    click.echo(f">>> EchoMap relay running on http://{host}:{port}", err=True)
    click.echo(f">>> WebSocket endpoint: ws://{host}:{port}", err=True)
    uvicorn.run(app, host=host, port=port, log_level="warning")
