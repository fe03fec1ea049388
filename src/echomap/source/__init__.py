"""Simulated sensor sources for testing a relay without hardware."""

from __future__ import annotations

from echomap.source.simulator import SweepSimulator, WireFormat, stream_to_relay

__all__ = ["SweepSimulator", "WireFormat", "stream_to_relay"]
