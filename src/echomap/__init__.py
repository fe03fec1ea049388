"""EchoMap — relay, decode, and archive live ranging-sensor point clouds."""

from __future__ import annotations

__version__ = "0.1.0"
