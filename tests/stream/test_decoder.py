"""Tests for StreamDecoder — structured and delimited sensor payloads."""

from __future__ import annotations

import pytest

from echomap.errors import DecodeError
from echomap.models.config import PayloadEncoding, SensorModel
from echomap.stream.decoder import StreamDecoder, detect_encoding
from echomap.stream.samples import CartesianSample, PolarSample


@pytest.fixture
def polar() -> StreamDecoder:
    return StreamDecoder(SensorModel.POLAR)


@pytest.fixture
def cartesian() -> StreamDecoder:
    return StreamDecoder(SensorModel.CARTESIAN)


# ---------------------------------------------------------------------------
# Encoding detection
# ---------------------------------------------------------------------------


class TestDetectEncoding:
    def test_brace_is_structured(self) -> None:
        assert detect_encoding('{"x": 1}') is PayloadEncoding.STRUCTURED

    def test_leading_whitespace_ignored(self) -> None:
        assert detect_encoding('  \n{"x": 1}') is PayloadEncoding.STRUCTURED

    def test_anything_else_is_delimited(self) -> None:
        assert detect_encoding("45,120") is PayloadEncoding.DELIMITED
        assert detect_encoding("[1, 2]") is PayloadEncoding.DELIMITED


# ---------------------------------------------------------------------------
# Polar model
# ---------------------------------------------------------------------------


class TestPolarStructured:
    def test_angle_and_distance(self, polar: StreamDecoder) -> None:
        sample = polar.decode('{"angle": 90, "distance": 50}')
        assert sample == PolarSample(angle=90.0, distance=50.0, elevation=None)

    def test_elevation_carried(self, polar: StreamDecoder) -> None:
        sample = polar.decode('{"angle": 45, "distance": 120, "elevation": 2}')
        assert isinstance(sample, PolarSample)
        assert sample.elevation == 2.0

    def test_extra_keys_ignored(self, polar: StreamDecoder) -> None:
        sample = polar.decode('{"angle": 1, "distance": 2, "quality": 15}')
        assert sample == PolarSample(angle=1.0, distance=2.0)

    def test_numeric_strings_accepted(self, polar: StreamDecoder) -> None:
        sample = polar.decode('{"angle": "30", "distance": "7.5"}')
        assert sample == PolarSample(angle=30.0, distance=7.5)

    def test_missing_distance_rejected(self, polar: StreamDecoder) -> None:
        with pytest.raises(DecodeError, match="distance"):
            polar.decode('{"angle": 90}')

    def test_null_angle_rejected(self, polar: StreamDecoder) -> None:
        with pytest.raises(DecodeError, match="angle"):
            polar.decode('{"angle": null, "distance": 10}')

    def test_cartesian_record_rejected(self, polar: StreamDecoder) -> None:
        with pytest.raises(DecodeError):
            polar.decode('{"x": 1, "y": 2, "z": 3}')


class TestPolarDelimited:
    def test_two_fields(self, polar: StreamDecoder) -> None:
        assert polar.decode("45,120") == PolarSample(angle=45.0, distance=120.0)

    def test_whitespace_around_fields(self, polar: StreamDecoder) -> None:
        assert polar.decode(" 45 , 120 \n") == PolarSample(angle=45.0, distance=120.0)

    def test_extra_fields_ignored(self, polar: StreamDecoder) -> None:
        sample = polar.decode("45,120,99")
        assert sample == PolarSample(angle=45.0, distance=120.0)
        assert sample.elevation is None

    def test_unused_trailing_value_not_parsed(self, polar: StreamDecoder) -> None:
        assert polar.decode("45,120,abc") == PolarSample(angle=45.0, distance=120.0)


# ---------------------------------------------------------------------------
# Cartesian model
# ---------------------------------------------------------------------------


class TestCartesianStructured:
    def test_all_axes(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode('{"x": 10, "y": 5, "z": 0}') == CartesianSample(10.0, 5.0, 0.0)

    def test_missing_axes_default_to_zero(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode('{"x": 3}') == CartesianSample(3.0, 0.0, 0.0)

    def test_no_axes_decodes_to_origin(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode('{"status": 1}') == CartesianSample(0.0, 0.0, 0.0)

    def test_empty_object_decodes_to_origin(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode("{}") == CartesianSample(0.0, 0.0, 0.0)


class TestCartesianDelimited:
    def test_three_fields(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode("10,5,0") == CartesianSample(10.0, 5.0, 0.0)

    def test_two_fields_z_defaults(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode("10,5") == CartesianSample(10.0, 5.0, 0.0)

    def test_negative_and_fractional(self, cartesian: StreamDecoder) -> None:
        assert cartesian.decode("-1.5,2e1,0.25") == CartesianSample(-1.5, 20.0, 0.25)


# ---------------------------------------------------------------------------
# Malformed payloads
# ---------------------------------------------------------------------------


class TestMalformed:
    @pytest.mark.parametrize(
        "payload",
        [
            "{",
            "abc",
            "1",
            "",
            "   ",
            "1,",
            ",2",
            "1,two",
            "[1, 2]",
            '{"angle": true, "distance": 1}',
        ],
    )
    def test_rejected(self, polar: StreamDecoder, payload: str) -> None:
        with pytest.raises(DecodeError):
            polar.decode(payload)

    @pytest.mark.parametrize("payload", ["nan,1", "1,inf", '{"angle": 1, "distance": NaN}'])
    def test_non_finite_rejected(self, polar: StreamDecoder, payload: str) -> None:
        with pytest.raises(DecodeError):
            polar.decode(payload)

    def test_json_array_rejected_as_structured(self, cartesian: StreamDecoder) -> None:
        with pytest.raises(DecodeError, match="must be an object"):
            cartesian.decode("[1, 2, 3]", PayloadEncoding.STRUCTURED)

    def test_error_carries_payload(self, polar: StreamDecoder) -> None:
        with pytest.raises(DecodeError) as excinfo:
            polar.decode("abc")
        assert excinfo.value.payload == "abc"

    def test_invalid_utf8_rejected(self, polar: StreamDecoder) -> None:
        with pytest.raises(DecodeError, match="UTF-8"):
            polar.decode(b"\xff\xfe")

    def test_try_decode_returns_none(self, polar: StreamDecoder) -> None:
        assert polar.try_decode("{") is None
        assert polar.try_decode("45,120") == PolarSample(45.0, 120.0)


# ---------------------------------------------------------------------------
# Declared encoding
# ---------------------------------------------------------------------------


class TestDeclaredEncoding:
    def test_bytes_payload(self, polar: StreamDecoder) -> None:
        assert polar.decode(b"45,120") == PolarSample(45.0, 120.0)

    def test_declared_delimited_refuses_json(self) -> None:
        decoder = StreamDecoder(SensorModel.POLAR, PayloadEncoding.DELIMITED)
        with pytest.raises(DecodeError):
            decoder.decode('{"angle": 1, "distance": 2}')

    def test_declared_structured_refuses_csv(self) -> None:
        decoder = StreamDecoder(SensorModel.CARTESIAN, PayloadEncoding.STRUCTURED)
        with pytest.raises(DecodeError, match="Malformed"):
            decoder.decode("10,5,0")

    def test_per_call_override(self, polar: StreamDecoder) -> None:
        with pytest.raises(DecodeError):
            polar.decode("45,120", PayloadEncoding.STRUCTURED)

    def test_model_selects_variant_not_payload(self) -> None:
        polar = StreamDecoder(SensorModel.POLAR)
        cart = StreamDecoder(SensorModel.CARTESIAN)
        assert isinstance(polar.decode("3,4"), PolarSample)
        assert isinstance(cart.decode("3,4"), CartesianSample)
