from __future__ import annotations

from echomap.output.formatter import OutputFormatter

__all__ = ["OutputFormatter"]
