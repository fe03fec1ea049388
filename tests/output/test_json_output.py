from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from echomap.buffer.points import PointBuffer
from echomap.models.config import SensorModel
from echomap.models.scan import ScanInfo
from echomap.output.json_output import format_json_error, format_json_response
from echomap.stream.samples import PolarSample
from echomap.stream.transform import point_from_position


class TestFormatJsonResponse:
    """Tests for :func:`format_json_response`."""

    def test_with_model(self) -> None:
        info = ScanInfo(name="room.json", size=42, date=datetime(2026, 10, 19, tzinfo=UTC))
        parsed = json.loads(format_json_response(data=info, command="scans.list"))

        assert parsed["ok"] is True
        assert parsed["command"] == "scans.list"
        assert parsed["data"]["name"] == "room.json"
        assert parsed["data"]["date"].startswith("2026-10-19T00:00:00")
        assert "timestamp" in parsed

    def test_with_list_of_models(self) -> None:
        scans = [
            ScanInfo(name="b.json", size=2, date=datetime(2026, 1, 2, tzinfo=UTC)),
            ScanInfo(name="a.json", size=1, date=datetime(2026, 1, 1, tzinfo=UTC)),
        ]
        parsed = json.loads(format_json_response(data=scans, command="scans.list"))
        assert [s["name"] for s in parsed["data"]] == ["b.json", "a.json"]

    def test_with_dataclass(self) -> None:
        parsed = json.loads(format_json_response(data=PolarSample(45, 120), command="x"))
        assert parsed["data"] == {"angle": 45, "distance": 120, "elevation": None}

    def test_with_points(self) -> None:
        buf = PointBuffer(4)
        buf.insert(point_from_position(1, 2, 3))
        parsed = json.loads(format_json_response(data=buf.snapshot(), command="x"))
        assert parsed["data"][0]["position"] == [1.0, 2.0, 3.0]
        assert len(parsed["data"][0]["color"]) == 3

    def test_enums_and_paths(self) -> None:
        data = {"model": SensorModel.CARTESIAN, "exported": Path("/tmp/c.ply")}
        parsed = json.loads(format_json_response(data=data, command="x"))
        assert parsed["data"] == {"model": "cartesian", "exported": "/tmp/c.ply"}

    def test_with_dict(self) -> None:
        parsed = json.loads(format_json_response(data={"sent": 5}, command="simulate"))
        assert parsed["data"] == {"sent": 5}


class TestFormatJsonError:
    def test_error_envelope(self) -> None:
        parsed = json.loads(
            format_json_error(code="transport_failed", message="refused", command="view")
        )
        assert parsed["ok"] is False
        assert parsed["error"] == {"code": "transport_failed", "message": "refused"}

    def test_extra_fields(self) -> None:
        parsed = json.loads(
            format_json_error(code="persistence_failed", message="m", command="c", status=404)
        )
        assert parsed["error"]["status"] == 404
