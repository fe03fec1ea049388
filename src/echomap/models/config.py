from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SensorModel(StrEnum):
    """Coordinate convention used to interpret a raw measurement."""

    POLAR = "polar"
    CARTESIAN = "cartesian"


class PayloadEncoding(StrEnum):
    """How a wire payload is laid out.

    ``AUTO`` classifies each payload by its first character (``{`` means
    structured); the other two declare the layout up front.
    """

    AUTO = "auto"
    STRUCTURED = "structured"
    DELIMITED = "delimited"


class OverflowPolicy(StrEnum):
    """What a full per-peer relay queue does with the next message."""

    DROP_NEW = "drop-new"
    DROP_OLDEST = "drop-oldest"


DEFAULT_CAPACITY = 50_000
DEFAULT_QUEUE_SIZE = 256
DEFAULT_PORT = 3000


class AppSettings(BaseSettings):
    """Application-wide settings populated from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ECHOMAP_",
        extra="ignore",
        populate_by_name=True,
    )

    # Viewer side
    sensor_model: SensorModel = SensorModel.POLAR
    payload_encoding: PayloadEncoding = PayloadEncoding.AUTO
    relay_url: str = f"ws://localhost:{DEFAULT_PORT}"
    buffer_capacity: int = Field(default=DEFAULT_CAPACITY, gt=0)

    # Relay side
    host: str = "0.0.0.0"
    port: int = Field(
        default=DEFAULT_PORT,
        ge=0,
        le=65535,
        validation_alias=AliasChoices("ECHOMAP_PORT", "PORT"),
    )
    queue_size: int = Field(default=DEFAULT_QUEUE_SIZE, gt=0)
    overflow: OverflowPolicy = OverflowPolicy.DROP_NEW
    max_connections: int = Field(default=0, ge=0)
    scans_dir: str = "./scans"
