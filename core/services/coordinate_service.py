"""Decimal degree <-> EXIF DMS rational conversion.

EXIF stores each angle as three unsigned rationals (degrees, minutes,
seconds) with the sign carried separately by a hemisphere reference letter.
Seconds keep two decimal digits (denominator 100), so a round trip is exact
to within 1e-4 degrees.
"""

from __future__ import annotations

import math
from typing import Any

from core.errors import ValidationError
from core.models import Coordinate, DmsRational, Rational

SECONDS_DENOMINATOR = 100
ROUND_TRIP_TOLERANCE = 1e-4


def to_dms_rational(value: float) -> DmsRational:
    """Encode the absolute value of `value` as degree/minute/second rationals."""
    absolute = abs(float(value))
    degrees = math.floor(absolute)
    minutes_float = (absolute - degrees) * 60
    minutes = math.floor(minutes_float)
    # half-up rounding
    seconds = math.floor((minutes_float - minutes) * 60 * SECONDS_DENOMINATOR + 0.5)

    if seconds >= 60 * SECONDS_DENOMINATOR:
        seconds -= 60 * SECONDS_DENOMINATOR
        minutes += 1
    if minutes >= 60:
        minutes -= 60
        degrees += 1

    return ((int(degrees), 1), (int(minutes), 1), (int(seconds), SECONDS_DENOMINATOR))


def latitude_ref(latitude: float) -> str:
    """Return "N" for latitude >= 0 (zero included), else "S"."""
    return "N" if latitude >= 0 else "S"


def longitude_ref(longitude: float) -> str:
    """Return "E" for longitude >= 0 (zero included), else "W"."""
    return "E" if longitude >= 0 else "W"


def normalize_ref(ref: str | bytes | None) -> str:
    """Decode a hemisphere reference to a single upper-case letter ("" if unknown)."""
    if ref is None:
        return ""
    if isinstance(ref, (bytes, bytearray)):
        ref = bytes(ref).decode("ascii", errors="ignore")
    return str(ref).strip("\x00 ").upper()[:1]


def _rational_value(r: Rational) -> float:
    num, den = r
    return num / den


def from_dms_rational(dms: DmsRational, ref: str | bytes | None) -> float:
    """Decode three rationals plus reference into signed decimal degrees.

    Raises:
        ZeroDivisionError: A rational has a zero denominator.
        ValueError: `dms` does not hold three (num, den) pairs.
    """
    if len(dms) != 3:
        raise ValueError(f"Expected three rationals, got {len(dms)}")
    degrees, minutes, seconds = (_rational_value(r) for r in dms)
    decimal = degrees + minutes / 60 + seconds / 3600
    if normalize_ref(ref) in ("S", "W"):
        decimal = -decimal
    return decimal


def encode_coordinate(coord: Coordinate) -> tuple[DmsRational, str, DmsRational, str]:
    """Return (lat_dms, lat_ref, lng_dms, lng_ref) for `coord`."""
    return (
        to_dms_rational(coord.latitude),
        latitude_ref(coord.latitude),
        to_dms_rational(coord.longitude),
        longitude_ref(coord.longitude),
    )


def validate_coordinate(latitude: Any, longitude: Any) -> Coordinate:
    """Parse untyped input (form fields, CLI args) into a `Coordinate`.

    Raises:
        ValidationError: Values are not numeric or out of range.
    """
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError) as ex:
        raise ValidationError(f"Invalid coordinates: {latitude!r}, {longitude!r}") from ex
    return Coordinate(lat, lng)


def format_decimal(coord: Coordinate) -> str:
    """Coordinate exchange string, e.g. "48.858400, 2.294500"."""
    return f"{coord.latitude:.6f}, {coord.longitude:.6f}"


def format_cardinal(coord: Coordinate) -> str:
    """Human-readable form with hemisphere letters, e.g. "48.858400° N, 2.294500° E"."""
    return (
        f"{abs(coord.latitude):.6f}° {latitude_ref(coord.latitude)}, "
        f"{abs(coord.longitude):.6f}° {longitude_ref(coord.longitude)}"
    )
