from __future__ import annotations

import pytest

from core.errors import ValidationError
from core.services.validation_service import AssetFactory, generate_id, validate_file_size
from infrastructure.settings import JsonSettings


def test_validate_file_size_limit():
    validate_file_size("a.jpg", 100, 100)
    with pytest.raises(ValidationError, match="max 20MB"):
        validate_file_size("a.jpg", 20 * 1024 * 1024 + 1, 20 * 1024 * 1024)


def test_generate_id_is_unique():
    ids = {generate_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 12 for i in ids)


def test_create_jpeg_asset(factory, camera_jpeg):
    asset = factory.create("cam.jpg", camera_jpeg, "image/jpeg")

    assert asset.media_type == "image/jpeg"
    assert asset.size == len(camera_jpeg)
    assert asset.preview is not None
    assert asset.existing_gps.latitude == pytest.approx(-33.8688, abs=1e-4)


def test_create_uses_extension_when_type_missing(factory, webp_bytes):
    asset = factory.create("shot.webp", webp_bytes, None)
    assert asset.media_type == "image/webp"
    assert asset.existing_gps is None


def test_create_rejects_unsupported(factory):
    with pytest.raises(ValidationError, match="Unsupported file type"):
        factory.create("anim.gif", b"GIF89a", "image/gif")


def test_max_size_comes_from_settings(normalizer, codec, jpeg_bytes):
    factory = AssetFactory(normalizer, codec, JsonSettings(data={"intake": {"max_file_mb": 0.001}}))
    assert factory.max_bytes == int(0.001 * 1024 * 1024)
    with pytest.raises(ValidationError, match="File too large"):
        factory.create("a.jpg", jpeg_bytes + b"\x00" * 2048, None)


def test_default_max_size(factory):
    assert factory.max_bytes == 20 * 1024 * 1024
