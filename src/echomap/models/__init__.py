from __future__ import annotations

from echomap.models.config import (
    DEFAULT_CAPACITY,
    DEFAULT_PORT,
    DEFAULT_QUEUE_SIZE,
    AppSettings,
    OverflowPolicy,
    PayloadEncoding,
    SensorModel,
)
from echomap.models.scan import SaveScanRequest, SaveScanResult, ScanInfo, ScanPoint

__all__ = [
    # config
    "DEFAULT_CAPACITY",
    "DEFAULT_PORT",
    "DEFAULT_QUEUE_SIZE",
    "AppSettings",
    "OverflowPolicy",
    "PayloadEncoding",
    "SensorModel",
    # scan
    "SaveScanRequest",
    "SaveScanResult",
    "ScanInfo",
    "ScanPoint",
]
