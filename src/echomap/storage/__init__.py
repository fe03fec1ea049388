"""Scan persistence."""

from __future__ import annotations

from echomap.storage.scans import SCAN_SUFFIXES, ScanStore, sanitize_name

__all__ = ["SCAN_SUFFIXES", "ScanStore", "sanitize_name"]
