from __future__ import annotations

import math

import pytest

from core.errors import ValidationError
from core.models import Coordinate
from core.services.coordinate_service import (
    ROUND_TRIP_TOLERANCE,
    encode_coordinate,
    format_cardinal,
    format_decimal,
    from_dms_rational,
    latitude_ref,
    longitude_ref,
    normalize_ref,
    to_dms_rational,
    validate_coordinate,
)


def test_eiffel_tower_encoding():
    lat_dms, lat_ref, lng_dms, lng_ref = encode_coordinate(Coordinate(48.8584, 2.2945))

    assert lat_dms == ((48, 1), (51, 1), (3024, 100))
    assert lat_ref == "N"
    assert lng_dms == ((2, 1), (17, 1), (4020, 100))
    assert lng_ref == "E"

    assert abs(from_dms_rational(lat_dms, lat_ref) - 48.8584) < ROUND_TRIP_TOLERANCE
    assert abs(from_dms_rational(lng_dms, lng_ref) - 2.2945) < ROUND_TRIP_TOLERANCE


@pytest.mark.parametrize(
    "lat,lng",
    [
        (0.0, 0.0),
        (90.0, 180.0),
        (-90.0, -180.0),
        (-33.8688, 151.2093),
        (40.7128, -74.0060),
        (64.1466, -21.9426),
        (-0.000001, 0.999999999),
    ],
)
def test_round_trip_within_tolerance(lat, lng):
    lat_back = from_dms_rational(to_dms_rational(lat), latitude_ref(lat))
    lng_back = from_dms_rational(to_dms_rational(lng), longitude_ref(lng))
    assert abs(lat_back - lat) < ROUND_TRIP_TOLERANCE
    assert abs(lng_back - lng) < ROUND_TRIP_TOLERANCE


def test_sign_is_carried_by_reference_only():
    assert to_dms_rational(-48.8584) == to_dms_rational(48.8584)


def test_seconds_rounding_carries_into_minutes_and_degrees():
    assert to_dms_rational(10.999999999) == ((11, 1), (0, 1), (0, 100))
    degrees, minutes, seconds = to_dms_rational(12.5)
    assert (degrees, minutes, seconds) == ((12, 1), (30, 1), (0, 100))


def test_hemisphere_boundaries():
    assert latitude_ref(0) == "N"
    assert longitude_ref(0) == "E"
    assert latitude_ref(12.3) == "N"
    assert latitude_ref(-0.0001) == "S"
    assert longitude_ref(45) == "E"
    assert longitude_ref(-0.0001) == "W"


def test_from_dms_accepts_bytes_and_padded_refs():
    dms = ((10, 1), (30, 1), (0, 100))
    assert from_dms_rational(dms, b"S\x00") == -10.5
    assert from_dms_rational(dms, "w") == -10.5
    assert from_dms_rational(dms, b"N") == 10.5
    assert from_dms_rational(dms, None) == 10.5
    assert normalize_ref(b" E\x00") == "E"


def test_from_dms_zero_denominator_raises():
    with pytest.raises(ZeroDivisionError):
        from_dms_rational(((10, 0), (0, 1), (0, 1)), "N")


def test_from_dms_requires_three_rationals():
    with pytest.raises(ValueError):
        from_dms_rational(((10, 1), (0, 1)), "N")


@pytest.mark.parametrize(
    "lat,lng",
    [(90.0001, 0), (-90.5, 0), (0, 180.01), (0, -181), (math.nan, 0), (0, math.inf)],
)
def test_out_of_range_coordinates_are_rejected(lat, lng):
    with pytest.raises(ValidationError):
        Coordinate(lat, lng)


def test_validate_coordinate_parses_strings():
    coord = validate_coordinate("48.8584", " 2.2945 ")
    assert coord == Coordinate(48.8584, 2.2945)

    with pytest.raises(ValidationError):
        validate_coordinate("north", "2")
    with pytest.raises(ValidationError):
        validate_coordinate(None, 2)
    with pytest.raises(ValidationError):
        validate_coordinate("91", "0")


def test_exchange_string_formats():
    assert format_decimal(Coordinate(48.8584, 2.2945)) == "48.858400, 2.294500"
    assert format_decimal(Coordinate(-33.8688, 151.2093)) == "-33.868800, 151.209300"
    assert format_cardinal(Coordinate(-33.8688, -70.5)) == "33.868800° S, 70.500000° W"
