from __future__ import annotations

import io

from conftest import make_image_bytes
import piexif
from PIL import Image
import pytest

from core.errors import NormalizationError
from infrastructure.image_service import FormatNormalizer, resolve_media_type
from infrastructure.settings import JsonSettings


def _open(data: bytes) -> Image.Image:
    im = Image.open(io.BytesIO(data))
    im.load()
    return im


@pytest.mark.parametrize(
    "name,declared,expected",
    [
        ("a.jpg", "image/jpeg", "image/jpeg"),
        ("a.JPG", "image/jpg", "image/jpeg"),
        ("a.jpeg", None, "image/jpeg"),
        ("a.png", "", "image/png"),
        ("a.webp", "application/octet-stream", "image/webp"),
        ("IMG_0001.HEIC", "", "image/heic"),
        ("a.heif", None, "image/heic"),
        ("b.bin", "image/heic", "image/heic"),
        ("a.gif", "image/gif", None),
        ("notes.txt", None, None),
    ],
)
def test_resolve_media_type(name, declared, expected):
    assert resolve_media_type(name, declared) == expected


def test_jpeg_passes_through_untouched(normalizer, jpeg_bytes):
    result = normalizer.normalize(jpeg_bytes, "image/jpeg")
    assert result.data is jpeg_bytes
    assert not result.converted
    assert not normalizer.needs_normalization("image/jpg")


def test_png_is_reencoded_as_jpeg(normalizer, png_bytes):
    assert normalizer.needs_normalization("image/png")
    result = normalizer.normalize(png_bytes, "image/png")

    assert result.converted
    assert result.media_type == "image/jpeg"
    assert result.data[:2] == b"\xff\xd8"
    im = _open(result.data)
    assert im.format == "JPEG"
    assert im.mode == "RGB"
    assert im.size == (32, 24)


def test_transparent_pixels_are_flattened_onto_white(normalizer):
    clear = Image.new("RGBA", (16, 16), (0, 0, 0, 0))
    buf = io.BytesIO()
    clear.save(buf, format="PNG")

    im = _open(normalizer.normalize(buf.getvalue(), "image/png").data)
    r, g, b = im.getpixel((8, 8))
    assert min(r, g, b) > 240


def test_webp_is_reencoded_as_jpeg(normalizer, webp_bytes):
    result = normalizer.normalize(webp_bytes, "image/webp")
    assert _open(result.data).format == "JPEG"


def test_quality_comes_from_settings():
    settings = JsonSettings(data={"normalizer": {"jpeg_quality": 60}})
    assert FormatNormalizer(settings).quality == 60
    assert FormatNormalizer().quality == 95


def test_heic_uses_external_decoder(png_bytes):
    calls: list[bytes] = []

    def fake_heif(data: bytes) -> Image.Image:
        calls.append(data)
        return _open(png_bytes)

    normalizer = FormatNormalizer(heic_decoder=fake_heif)
    result = normalizer.normalize(b"fake-heic-bytes", "image/heic")

    assert calls == [b"fake-heic-bytes"]
    assert _open(result.data).format == "JPEG"


def test_external_decoder_failure_is_normalization_error():
    def broken(data: bytes) -> Image.Image:
        raise RuntimeError("libheif exploded")

    normalizer = FormatNormalizer(heic_decoder=broken)
    with pytest.raises(NormalizationError, match="libheif exploded"):
        normalizer.normalize(b"whatever", "image/heic")


def test_undecodable_raster_is_normalization_error(normalizer):
    with pytest.raises(NormalizationError):
        normalizer.normalize(b"\x89PNG\r\n\x1a\nbroken", "image/png")


def test_unknown_media_type_is_normalization_error(normalizer, png_bytes):
    with pytest.raises(NormalizationError):
        normalizer.normalize(png_bytes, "image/gif")


def test_preview_is_bounded_and_cached(normalizer):
    big = make_image_bytes("PNG", size=(400, 200))
    preview = normalizer.make_preview(big, "image/png", max_side=100)

    assert preview is not None
    assert _open(preview).size == (100, 50)
    assert normalizer.make_preview(big, "image/png", max_side=100) is preview


def test_preview_of_garbage_is_none(normalizer):
    assert normalizer.make_preview(b"nope", "image/png") is None


def test_extract_exif_block_from_webp(normalizer):
    exif = piexif.dump({"0th": {piexif.ImageIFD.Make: b"Google"}})
    webp = make_image_bytes("WEBP", exif=exif)

    block = normalizer.extract_exif_block(webp)
    assert block is not None
    assert b"Google" in block
    assert normalizer.extract_exif_block(b"garbage") is None
