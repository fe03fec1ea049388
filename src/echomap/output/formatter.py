"""Picks between Rich tables and JSON envelopes for command output."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

from rich.console import Console

from echomap.models.scan import ScanInfo
from echomap.output.json_output import format_json_error, format_json_response
from echomap.output.rich_output import RichOutput

if TYPE_CHECKING:
    from io import TextIOBase


class OutputFormatter:
    """Routes command results to JSON or Rich rendering.

    The format is *force_format* when given, otherwise ``"rich"`` when
    *stream* (default stdout) is a terminal and ``"json"`` when piped.
    In JSON mode the Rich console writes to stderr, so progress messages
    never corrupt the envelope on stdout.
    """

    def __init__(
        self,
        *,
        stream: TextIOBase | Any | None = None,
        force_format: str | None = None,
    ) -> None:
        self._stream = stream or sys.stdout
        if force_format is not None:
            self._format = force_format
        elif hasattr(self._stream, "isatty") and self._stream.isatty():
            self._format = "rich"
        else:
            self._format = "json"

        self._console = Console(stderr=self._format == "json")
        self._rich = RichOutput(self._console)

    @property
    def format(self) -> str:  # noqa: A003
        return self._format

    @property
    def rich(self) -> RichOutput:
        return self._rich

    def output(self, data: Any, *, command: str, title: str | None = None) -> None:
        """Print *data* as an envelope, or render it with the matching Rich view.

        Scan listings get the scan table and dicts a field/value table;
        anything else is printed as text.
        """
        if self._format == "json":
            print(format_json_response(data=data, command=command))  # noqa: T201
            return
        if isinstance(data, list) and all(isinstance(s, ScanInfo) for s in data):
            self._rich.scan_list(data)
        elif isinstance(data, dict):
            self._rich.fields(data, title=title)
        else:
            self._rich.info(str(data))

    def output_error(self, *, code: str, message: str, command: str) -> None:
        if self._format == "json":
            print(format_json_error(code=code, message=message, command=command))  # noqa: T201
        else:
            self._rich.error(message)
