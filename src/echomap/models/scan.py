from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

_EXTRA_IGNORE = ConfigDict(extra="ignore")


class ScanInfo(BaseModel):
    """Listing entry for one stored scan."""

    model_config = _EXTRA_IGNORE

    name: str
    size: int
    date: datetime


class ScanPoint(BaseModel):
    """One persisted position. Scans carry no color channel."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class SaveScanRequest(BaseModel):
    """Body of ``POST /api/scans``."""

    filename: str
    data: list[ScanPoint]


class SaveScanResult(BaseModel):
    success: bool = True
    filename: str
