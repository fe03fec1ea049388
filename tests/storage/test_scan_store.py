"""Tests for ScanStore — the on-disk scan directory."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from echomap.errors import PersistenceError, ScanNotFoundError
from echomap.models.scan import ScanPoint
from echomap.storage.scans import ScanStore, sanitize_name


@pytest.fixture
def store(tmp_path: Path) -> ScanStore:
    return ScanStore(tmp_path / "scans")


class TestSanitizeName:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("room", "room.json"),
            ("room.json", "room.json"),
            ("my scan!", "my_scan_.json"),
            ("../../etc/passwd", "_.._etc_passwd.json"),
            ("a/b\\c", "a_b_c.json"),
            ("scan.ply", "scan.ply.json"),
            ("scan_2026-10-19T12-00-00-000Z.json", "scan_2026-10-19T12-00-00-000Z.json"),
        ],
    )
    def test_sanitize(self, raw: str, expected: str) -> None:
        assert sanitize_name(raw) == expected

    def test_only_dots_rejected(self) -> None:
        with pytest.raises(PersistenceError):
            sanitize_name("...")


class TestSaveAndLoad:
    def test_round_trip_preserves_order(self, store: ScanStore) -> None:
        points = [(1.0, 2.0, 3.0), (-4.5, 0.0, 6.25), (7.0, 8.0, 9.0)]
        name = store.save_scan("room", points)

        assert name == "room.json"
        loaded = store.load_scan(name)
        assert [(p.x, p.y, p.z) for p in loaded] == points

    def test_accepts_models_and_dicts(self, store: ScanStore) -> None:
        name = store.save_scan("mixed", [ScanPoint(x=1, y=2, z=3), {"x": 4, "y": 5, "z": 6}])
        assert [p.x for p in store.load_scan(name)] == [1.0, 4.0]

    def test_file_is_json_array(self, store: ScanStore) -> None:
        name = store.save_scan("room", [(1, 2, 3)])
        raw = json.loads((store.directory / name).read_text())
        assert raw == [{"x": 1.0, "y": 2.0, "z": 3.0}]

    def test_never_overwrites(self, store: ScanStore) -> None:
        first = store.save_scan("room", [(1, 1, 1)])
        second = store.save_scan("room", [(2, 2, 2)])
        third = store.save_scan("room.json", [(3, 3, 3)])

        assert (first, second, third) == ("room.json", "room-1.json", "room-2.json")
        assert store.load_scan(first)[0].x == 1.0
        assert store.load_scan(third)[0].x == 3.0

    def test_creates_directory(self, store: ScanStore) -> None:
        assert not store.directory.exists()
        store.save_scan("room", [])
        assert store.directory.is_dir()

    def test_invalid_point(self, store: ScanStore) -> None:
        with pytest.raises(PersistenceError) as excinfo:
            store.save_scan("bad", [{"x": "far"}])
        assert excinfo.value.status_code == 400

    def test_load_missing(self, store: ScanStore) -> None:
        with pytest.raises(ScanNotFoundError):
            store.load_scan("nope.json")

    @pytest.mark.parametrize("name", ["../secret.json", "sub/x.json", ".hidden.json", ""])
    def test_load_refuses_paths(self, store: ScanStore, name: str) -> None:
        with pytest.raises(ScanNotFoundError):
            store.load_scan(name)

    def test_load_corrupt(self, store: ScanStore) -> None:
        store.directory.mkdir(parents=True)
        (store.directory / "bad.json").write_text('{"x": 1}')
        with pytest.raises(PersistenceError) as excinfo:
            store.load_scan("bad.json")
        assert not isinstance(excinfo.value, ScanNotFoundError)

    def test_load_ply_scaled_to_sensor_units(self, store: ScanStore) -> None:
        store.directory.mkdir(parents=True)
        (store.directory / "cloud.ply").write_text(
            "ply\nformat ascii 1.0\nelement vertex 1\n"
            "property float x\nproperty float y\nproperty float z\n"
            "end_header\n1.5 2.5 3.5\n"
        )
        assert store.load_scan("cloud.ply") == [ScanPoint(x=15.0, y=25.0, z=35.0)]

    def test_non_finite_point_rejected(self, store: ScanStore) -> None:
        with pytest.raises(PersistenceError) as excinfo:
            store.save_scan("bad", [(float("nan"), 0.0, 0.0)])
        assert excinfo.value.status_code == 400
        assert not store.directory.exists() or list(store.directory.iterdir()) == []


class TestListScans:
    def test_missing_directory(self, store: ScanStore) -> None:
        assert store.list_scans() == []

    def test_newest_first_and_filtered(self, store: ScanStore) -> None:
        old = store.save_scan("old", [(0, 0, 0)])
        new = store.save_scan("new", [(0, 0, 0), (1, 1, 1)])
        (store.directory / "cloud.ply").write_text("ply\n")
        (store.directory / "readme.txt").write_text("skip")
        (store.directory / "nested.json").mkdir()

        os.utime(store.directory / old, (1_000_000, 1_000_000))
        os.utime(store.directory / new, (3_000_000, 3_000_000))
        os.utime(store.directory / "cloud.ply", (2_000_000, 2_000_000))

        scans = store.list_scans()
        assert [s.name for s in scans] == [new, "cloud.ply", old]
        sizes = {s.name: s.size for s in scans}
        assert sizes[new] == (store.directory / new).stat().st_size
        assert scans[0].date.tzinfo is not None
