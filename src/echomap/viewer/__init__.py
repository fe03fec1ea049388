"""Viewer side: relay session and scan gateway client."""

from __future__ import annotations

from echomap.viewer.gateway import ScanGateway, http_base_from_ws
from echomap.viewer.session import ConnectionState, ViewerSession, default_scan_name

__all__ = [
    "ConnectionState",
    "ScanGateway",
    "ViewerSession",
    "default_scan_name",
    "http_base_from_ws",
]
