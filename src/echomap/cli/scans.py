"""``echomap scans`` — browse, fetch, and upload saved scans."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

import click

from echomap._internal.async_utils import run_async

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from echomap.cli.main import AppContext
    from echomap.models.scan import ScanInfo
    from echomap.viewer.session import ViewerSession

T = TypeVar("T")

_url_option = click.option(
    "--url",
    default=None,
    help="Relay URL (default: $ECHOMAP_RELAY_URL); the API is served on the same port",
)


def _make_session(app_ctx: AppContext, url: str | None) -> ViewerSession:
    from echomap.buffer.points import PointBuffer
    from echomap.viewer.gateway import ScanGateway, http_base_from_ws
    from echomap.viewer.session import ViewerSession

    settings = app_ctx.settings
    relay_url = url or settings.relay_url
    return ViewerSession(
        relay_url,
        buffer=PointBuffer(settings.buffer_capacity),
        gateway=ScanGateway(http_base_from_ws(relay_url)),
    )


async def _with_gateway(session: ViewerSession, coro: Coroutine[Any, Any, T]) -> T:
    try:
        return await coro
    finally:
        assert session.gateway is not None
        await session.gateway.aclose()


@click.group("scans")
def scans_group() -> None:
    """Saved scans on the relay's scan API."""


@scans_group.command("list")
@_url_option
@click.pass_obj
def list_cmd(app_ctx: AppContext, url: str | None) -> None:
    """List stored scans, newest first."""
    session = _make_session(app_ctx, url)
    scans: list[ScanInfo] = run_async(_with_gateway(session, session.list_scans()))
    app_ctx.formatter.output(scans, command="scans.list")


@scans_group.command("load")
@click.argument("name")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the scan to a PLY file",
)
@_url_option
@click.pass_obj
def load_cmd(app_ctx: AppContext, name: str, export_path: str | None, url: str | None) -> None:
    """Fetch a stored scan and report (or export) its points."""
    session = _make_session(app_ctx, url)
    count = run_async(_with_gateway(session, session.load_scan(name)))

    path = session.export_ply(export_path) if export_path else None

    app_ctx.formatter.output(
        {"name": name, "points": count, "exported": str(path) if path else None},
        command="scans.load",
        title="Scan loaded",
    )


@scans_group.command("upload")
@click.argument("ply_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default=None, help="Stored name (default: scan_<timestamp>.json)")
@_url_option
@click.pass_obj
def upload_cmd(app_ctx: AppContext, ply_file: str, name: str | None, url: str | None) -> None:
    """Upload the points of a PLY file as a new scan."""
    session = _make_session(app_ctx, url)
    count = session.import_ply(ply_file)
    stored = run_async(_with_gateway(session, session.save_scan(name)))

    app_ctx.formatter.output(
        {"filename": stored, "points": count},
        command="scans.upload",
        title="Scan saved",
    )
