from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from echomap.models.scan import ScanInfo
    from echomap.viewer.session import ViewerSession


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class RichOutput:
    """Rich-based terminal output helpers for *echomap*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def scan_list(self, scans: list[ScanInfo]) -> None:
        """Print a table of stored scans, newest first."""
        if not scans:
            self._con.print("[dim]No scans found.[/dim]")
            return

        table = Table(title="Scans")
        table.add_column("Name", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Modified")

        for s in scans:
            modified = s.date.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            table.add_row(s.name, _human_size(s.size), modified)

        self._con.print(table)

    # ------------------------------------------------------------------
    # Viewer
    # ------------------------------------------------------------------

    def session_summary(self, session: ViewerSession) -> None:
        """Print counters for a finished viewing session."""
        buf = session.buffer
        table = Table(title="Session")
        table.add_column("Field", style="bold")
        table.add_column("Value")

        table.add_row("Relay", session.url)
        table.add_row("Sensor model", str(session.decoder.model))
        table.add_row("Frames received", str(session.received_count))
        table.add_row("Points stored", f"{len(buf)} / {buf.capacity}")
        if session.decode_failure_count:
            table.add_row("Parse errors", f"[yellow]{session.decode_failure_count}[/yellow]")
        if buf.rejected_count:
            table.add_row("Dropped (buffer full)", f"[yellow]{buf.rejected_count}[/yellow]")

        self._con.print(table)

    # ------------------------------------------------------------------
    # Generic
    # ------------------------------------------------------------------

    def fields(self, data: dict[str, Any], *, title: str | None = None) -> None:
        """Print a two-column field/value table. ``None`` values are skipped."""
        table = Table(title=title, show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in data.items():
            if value is None:
                continue
            table.add_row(key.replace("_", " ").capitalize(), str(value))
        self._con.print(table)

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {message}")

    def info(self, message: str) -> None:
        """Print an informational message (plain)."""
        self._con.print(message)
