from __future__ import annotations

import io
import struct

import piexif
from PIL import Image
import pytest

from core.services.batch_service import BatchOrchestrator
from core.services.tagging_service import TaggingPipeline
from core.services.validation_service import AssetFactory
from infrastructure.exif_codec import MetadataCodec
from infrastructure.image_service import FormatNormalizer


def make_image_bytes(
    fmt: str, size: tuple[int, int] = (32, 24), mode: str = "RGB", **save_kw
) -> bytes:
    """Return an encoded gradient image in `fmt` (JPEG, PNG, WEBP)."""
    im = Image.new(mode, size)
    px = im.load()
    for x in range(size[0]):
        for y in range(size[1]):
            if mode == "RGBA":
                px[x, y] = (x * 7 % 256, y * 9 % 256, 120, 255 if x % 2 else 0)
            else:
                px[x, y] = (x * 7 % 256, y * 9 % 256, 120)
    buf = io.BytesIO()
    im.save(buf, format=fmt, **save_kw)
    return buf.getvalue()


def with_app1(jpeg: bytes, payload: bytes) -> bytes:
    """Insert a raw APP1 segment holding `payload` right after SOI."""
    return jpeg[:2] + b"\xff\xe1" + struct.pack(">H", len(payload) + 2) + payload + jpeg[2:]


class MemorySink:
    """Output sink collecting deliveries in memory."""

    def __init__(self) -> None:
        self.files: list[tuple[str, bytes]] = []
        self.archives: list[tuple[str, list[tuple[str, bytes]]]] = []

    def save_file(self, name: str, data: bytes) -> str:
        self.files.append((name, data))
        return f"mem://{name}"

    def save_archive(self, name: str, entries: list[tuple[str, bytes]]) -> str:
        self.archives.append((name, list(entries)))
        return f"mem://{name}"


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG", quality=90)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG", mode="RGBA")


@pytest.fixture
def webp_bytes() -> bytes:
    return make_image_bytes("WEBP", quality=90)


@pytest.fixture
def camera_jpeg() -> bytes:
    """JPEG with camera EXIF fields and an existing GPS position."""
    exif = {
        "0th": {
            piexif.ImageIFD.Make: b"Canon",
            piexif.ImageIFD.Model: b"EOS 5D",
            piexif.ImageIFD.Orientation: 1,
            piexif.ImageIFD.Software: b"Firmware 1.0",
        },
        "Exif": {
            piexif.ExifIFD.DateTimeOriginal: b"2024:05:01 10:00:00",
            piexif.ExifIFD.ExposureTime: (1, 125),
            piexif.ExifIFD.FNumber: (28, 10),
            piexif.ExifIFD.ISOSpeedRatings: 200,
            piexif.ExifIFD.FocalLength: (50, 1),
            piexif.ExifIFD.Flash: 1,
        },
        "GPS": {
            piexif.GPSIFD.GPSVersionID: (2, 3, 0, 0),
            piexif.GPSIFD.GPSLatitudeRef: b"S",
            piexif.GPSIFD.GPSLatitude: ((33, 1), (52, 1), (776, 100)),
            piexif.GPSIFD.GPSLongitudeRef: b"E",
            piexif.GPSIFD.GPSLongitude: ((151, 1), (12, 1), (3348, 100)),
            piexif.GPSIFD.GPSAltitudeRef: 0,
            piexif.GPSIFD.GPSAltitude: (35, 1),
        },
    }
    return make_image_bytes("JPEG", quality=90, exif=piexif.dump(exif))


@pytest.fixture
def codec() -> MetadataCodec:
    return MetadataCodec()


@pytest.fixture
def normalizer() -> FormatNormalizer:
    return FormatNormalizer()


@pytest.fixture
def pipeline(normalizer: FormatNormalizer, codec: MetadataCodec) -> TaggingPipeline:
    return TaggingPipeline(normalizer, codec)


@pytest.fixture
def factory(normalizer: FormatNormalizer, codec: MetadataCodec) -> AssetFactory:
    return AssetFactory(normalizer, codec)


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def orchestrator(pipeline: TaggingPipeline, sink: MemorySink) -> BatchOrchestrator:
    return BatchOrchestrator(pipeline, sink)
