"""Tests for AppSettings — environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from echomap.models.config import AppSettings, OverflowPolicy, PayloadEncoding, SensorModel

_ENV_KEYS = (
    "PORT",
    "ECHOMAP_PORT",
    "ECHOMAP_SENSOR_MODEL",
    "ECHOMAP_BUFFER_CAPACITY",
    "ECHOMAP_SCANS_DIR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_defaults(self) -> None:
        settings = AppSettings()
        assert settings.port == 3000
        assert settings.host == "0.0.0.0"
        assert settings.relay_url == "ws://localhost:3000"
        assert settings.sensor_model is SensorModel.POLAR
        assert settings.payload_encoding is PayloadEncoding.AUTO
        assert settings.overflow is OverflowPolicy.DROP_NEW
        assert settings.buffer_capacity == 50_000
        assert settings.max_connections == 0
        assert settings.scans_dir == "./scans"


class TestEnvironment:
    def test_prefixed_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ECHOMAP_SENSOR_MODEL", "cartesian")
        monkeypatch.setenv("ECHOMAP_BUFFER_CAPACITY", "10")
        settings = AppSettings()
        assert settings.sensor_model is SensorModel.CARTESIAN
        assert settings.buffer_capacity == 10

    def test_plain_port_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "8080")
        assert AppSettings().port == 8080

    def test_prefixed_port_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("ECHOMAP_PORT", "9090")
        assert AppSettings().port == 9090

    def test_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("ECHOMAP_SCANS_DIR=/data/scans\n")
        assert AppSettings().scans_dir == "/data/scans"

    def test_invalid_capacity(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ECHOMAP_BUFFER_CAPACITY", "0")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_invalid_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ECHOMAP_SENSOR_MODEL", "spherical")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_constructor_kwargs(self) -> None:
        assert AppSettings(port=0, queue_size=4).queue_size == 4
