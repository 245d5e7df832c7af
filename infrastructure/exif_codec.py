"""EXIF metadata codec for JPEG images built on piexif.

Parses the APP1 Exif segment into three tag groups (primary image tags,
camera/exposure tags, GPS tags), writes geotag fields, and splices a freshly
serialized segment back into the JPEG stream. Pixel data is never touched.

Loading is best-effort: a missing or corrupt segment yields an empty
container that can still be written. Serializing and splicing raise
`CodecError` when the input is structurally invalid.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import struct
from typing import Any

from loguru import logger
import piexif

from core.errors import CodecError, ValidationError
from core.models import Coordinate, ImageMetadata
from core.services.coordinate_service import encode_coordinate, from_dms_rational, normalize_ref

JPEG_SOI = b"\xff\xd8"
GPS_VERSION = (2, 3, 0, 0)
EXIF_HEADER = b"Exif\x00\x00"

_APP0 = 0xE0
_APP1 = 0xE1
_SOS = 0xDA
_EOI = 0xD9

_ORIENTATIONS = {
    1: "Horizontal (normal)",
    2: "Mirror horizontal",
    3: "Rotate 180",
    4: "Mirror vertical",
    5: "Mirror horizontal and rotate 270 CW",
    6: "Rotate 90 CW",
    7: "Mirror horizontal and rotate 90 CW",
    8: "Rotate 270 CW",
}


@dataclass
class MetadataContainer:
    """Parsed EXIF data as tag groups keyed by numeric tag id.

    Attributes:
        primary: Image (0th IFD) tags such as description, make and model.
        camera: Exif IFD tags such as exposure, f-number and ISO.
        gps: GPS IFD tags.
        interop: Interoperability IFD, re-emitted untouched.
        first: First IFD (thumbnail directory), re-emitted untouched.
        thumbnail: Embedded JPEG thumbnail, re-emitted untouched.
    """

    primary: dict[int, Any] = field(default_factory=dict)
    camera: dict[int, Any] = field(default_factory=dict)
    gps: dict[int, Any] = field(default_factory=dict)
    interop: dict[int, Any] = field(default_factory=dict)
    first: dict[int, Any] = field(default_factory=dict)
    thumbnail: bytes | None = None

    @property
    def is_empty(self) -> bool:
        """True when no tag group holds any value."""
        return not (self.primary or self.camera or self.gps or self.interop or self.first)

    def to_piexif(self) -> dict[str, Any]:
        """Return the dict layout expected by `piexif.dump`."""
        return {
            "0th": dict(self.primary),
            "Exif": dict(self.camera),
            "GPS": dict(self.gps),
            "Interop": dict(self.interop),
            "1st": dict(self.first),
            "thumbnail": self.thumbnail,
        }

    @classmethod
    def from_piexif(cls, data: dict[str, Any]) -> MetadataContainer:
        """Build a container from the dict returned by `piexif.load`."""
        return cls(
            primary=dict(data.get("0th") or {}),
            camera=dict(data.get("Exif") or {}),
            gps=dict(data.get("GPS") or {}),
            interop=dict(data.get("Interop") or {}),
            first=dict(data.get("1st") or {}),
            thumbnail=data.get("thumbnail"),
        )


def _text(value: Any) -> str | None:
    """Decode an EXIF ASCII value (bytes, NUL padded) to a stripped string."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    text = str(value).strip("\x00 ").strip()
    return text or None


def _utf16_text(value: Any) -> str | None:
    """Decode a Windows XP* tag (UTF-16LE byte sequence) to a string."""
    if value is None:
        return None
    try:
        raw = bytes(value)
    except (TypeError, ValueError):
        return None
    text = raw.decode("utf-16-le", errors="ignore").rstrip("\x00").strip()
    return text or None


def _rational(value: Any) -> float | None:
    """Return a single (num, den) rational as float, None when unusable."""
    try:
        num, den = value
        if not den:
            return None
        return num / den
    except (TypeError, ValueError):
        return None


def _format_exposure(value: Any) -> str | None:
    try:
        num, den = value
    except (TypeError, ValueError):
        return None
    if not den or not num:
        return None
    if num < den:
        return f"1/{round(den / num)}"
    return f"{num / den:g}"


def _format_flash(value: Any) -> str | None:
    if not isinstance(value, int):
        return None
    return "Flash fired" if value & 0x1 else "Flash did not fire"


def _int_value(value: Any) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, tuple) and value and isinstance(value[0], int):
        return value[0]
    return None


def _split_segments(buffer: bytes) -> tuple[list[bytes], bytes]:
    """Split JPEG `buffer` into its header segments and the remaining stream.

    Header segments are every marker segment between SOI and the first SOS
    (marker bytes included). The remainder starts at SOS and holds the
    entropy-coded image data.

    Raises:
        CodecError: A marker is missing or a segment runs past the end.
    """
    segments: list[bytes] = []
    pos = len(JPEG_SOI)
    size = len(buffer)
    while True:
        if pos + 2 > size or buffer[pos] != 0xFF:
            raise CodecError(f"Malformed JPEG marker at offset {pos}")
        marker = buffer[pos + 1]
        if marker == 0xFF:
            # fill byte
            pos += 1
            continue
        if marker in (_SOS, _EOI):
            return segments, buffer[pos:]
        if pos + 4 > size:
            raise CodecError(f"Truncated JPEG segment at offset {pos}")
        (length,) = struct.unpack(">H", buffer[pos + 2 : pos + 4])
        end = pos + 2 + length
        if length < 2 or end > size:
            raise CodecError(f"Truncated JPEG segment at offset {pos}")
        segments.append(buffer[pos:end])
        pos = end


def _is_exif_segment(segment: bytes) -> bool:
    return segment[1] == _APP1 and segment[4:10] == EXIF_HEADER


class MetadataCodec:
    """Read and write the EXIF segment of JPEG images."""

    def load(self, buffer: bytes) -> MetadataContainer:
        """Parse the EXIF segment of `buffer`; empty container when absent or corrupt."""
        if not buffer or buffer[:2] != JPEG_SOI:
            logger.debug("Not a JPEG stream; starting from empty EXIF container")
            return MetadataContainer()
        return self._load(buffer)

    def load_exif_block(self, raw: bytes | None) -> MetadataContainer:
        """Parse a bare EXIF block (as exposed by Pillow) into a container."""
        if not raw:
            return MetadataContainer()
        if raw[:4] != b"Exif":
            raw = b"Exif\x00\x00" + raw
        return self._load(raw)

    def _load(self, data: bytes) -> MetadataContainer:
        try:
            return MetadataContainer.from_piexif(piexif.load(data))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            # piexif surfaces corrupt IFDs as struct/Index/Value/Key errors alike
            logger.debug("EXIF load failed, using empty container: {}", ex)
            return MetadataContainer()

    def read_gps(self, container: MetadataContainer) -> Coordinate | None:
        """Return the stored GPS position, or None unless all four fields are valid."""
        gps = container.gps
        lat = gps.get(piexif.GPSIFD.GPSLatitude)
        lat_ref = gps.get(piexif.GPSIFD.GPSLatitudeRef)
        lng = gps.get(piexif.GPSIFD.GPSLongitude)
        lng_ref = gps.get(piexif.GPSIFD.GPSLongitudeRef)
        if not lat or not lng or not lat_ref or not lng_ref:
            return None
        try:
            return Coordinate(from_dms_rational(lat, lat_ref), from_dms_rational(lng, lng_ref))
        except (ZeroDivisionError, TypeError, ValueError, ValidationError) as ex:
            logger.debug("Unreadable GPS group ignored: {}", ex)
            return None

    def write_gps(self, container: MetadataContainer, coord: Coordinate) -> None:
        """Replace the whole GPS group with `coord`."""
        lat_dms, lat_ref, lng_dms, lng_ref = encode_coordinate(coord)
        container.gps = {
            piexif.GPSIFD.GPSVersionID: GPS_VERSION,
            piexif.GPSIFD.GPSLatitudeRef: lat_ref.encode("ascii"),
            piexif.GPSIFD.GPSLatitude: lat_dms,
            piexif.GPSIFD.GPSLongitudeRef: lng_ref.encode("ascii"),
            piexif.GPSIFD.GPSLongitude: lng_dms,
        }

    def write_description(self, container: MetadataContainer, text: str) -> None:
        """Set ImageDescription; non-ASCII text is stored as UTF-8 bytes."""
        container.primary[piexif.ImageIFD.ImageDescription] = text.encode("utf-8")

    def write_keywords(self, container: MetadataContainer, text: str) -> None:
        """Store keywords as UTF-16LE in both XPKeywords and XPComment."""
        encoded = tuple(text.encode("utf-16-le") + b"\x00\x00")
        container.primary[piexif.ImageIFD.XPKeywords] = encoded
        container.primary[piexif.ImageIFD.XPComment] = encoded

    def read_metadata(self, container: MetadataContainer) -> ImageMetadata:
        """Map the known tags onto `ImageMetadata`; unknown tags are ignored."""
        primary, camera, gps = container.primary, container.camera, container.gps
        meta = ImageMetadata()

        coord = self.read_gps(container)
        if coord is not None:
            meta.latitude = coord.latitude
            meta.longitude = coord.longitude
            altitude = _rational(gps.get(piexif.GPSIFD.GPSAltitude))
            if altitude is not None:
                below_sea = _int_value(gps.get(piexif.GPSIFD.GPSAltitudeRef)) == 1
                meta.altitude = -altitude if below_sea else altitude

        meta.date_time = (
            _text(camera.get(piexif.ExifIFD.DateTimeOriginal))
            or _text(primary.get(piexif.ImageIFD.DateTime))
            or _text(camera.get(piexif.ExifIFD.DateTimeDigitized))
        )
        meta.make = _text(primary.get(piexif.ImageIFD.Make))
        meta.model = _text(primary.get(piexif.ImageIFD.Model))
        meta.software = _text(primary.get(piexif.ImageIFD.Software))
        meta.description = _text(primary.get(piexif.ImageIFD.ImageDescription))
        meta.keywords = _utf16_text(primary.get(piexif.ImageIFD.XPKeywords))

        meta.width = _int_value(camera.get(piexif.ExifIFD.PixelXDimension)) or _int_value(
            primary.get(piexif.ImageIFD.ImageWidth)
        )
        meta.height = _int_value(camera.get(piexif.ExifIFD.PixelYDimension)) or _int_value(
            primary.get(piexif.ImageIFD.ImageLength)
        )
        orientation = _int_value(primary.get(piexif.ImageIFD.Orientation))
        meta.orientation = _ORIENTATIONS.get(orientation) if orientation else None

        meta.exposure_time = _format_exposure(camera.get(piexif.ExifIFD.ExposureTime))
        f_number = _rational(camera.get(piexif.ExifIFD.FNumber))
        meta.f_number = f"f/{f_number:g}" if f_number else None
        meta.iso = _int_value(camera.get(piexif.ExifIFD.ISOSpeedRatings))
        focal = _rational(camera.get(piexif.ExifIFD.FocalLength))
        meta.focal_length = f"{focal:g} mm" if focal else None
        meta.flash = _format_flash(camera.get(piexif.ExifIFD.Flash))
        return meta

    def dump(self, container: MetadataContainer) -> bytes:
        """Serialize `container` into an EXIF segment payload (``Exif\\0\\0`` + TIFF).

        Raises:
            CodecError: A tag value has the wrong type or the thumbnail is too large.
        """
        try:
            segment = piexif.dump(container.to_piexif())
        except (ValueError, TypeError, KeyError, struct.error) as ex:
            raise CodecError(f"Could not serialize EXIF data: {ex}") from ex
        # APP1 length field is 16 bits and counts itself
        if len(segment) + 2 > 0xFFFF:
            raise CodecError(f"EXIF segment too large: {len(segment)} bytes")
        return segment

    def splice(self, segment: bytes, buffer: bytes) -> bytes:
        """Insert or replace the EXIF segment of JPEG `buffer`.

        Raises:
            CodecError: `buffer` is not a well-formed JPEG stream.
        """
        if not buffer or buffer[:2] != JPEG_SOI:
            raise CodecError("Image data is not a JPEG stream")
        if segment[:6] != EXIF_HEADER:
            raise CodecError("Segment payload is not EXIF data")

        headers, body = _split_segments(buffer)
        kept = [seg for seg in headers if not _is_exif_segment(seg)]
        if len(kept) < len(headers):
            logger.debug("Dropping {} existing EXIF segment(s)", len(headers) - len(kept))
        app1 = bytes((0xFF, _APP1)) + struct.pack(">H", len(segment) + 2) + segment
        # EXIF goes right after a leading JFIF header, otherwise right after SOI
        index = 1 if kept and kept[0][1] == _APP0 else 0
        kept.insert(index, app1)
        return JPEG_SOI + b"".join(kept) + body
