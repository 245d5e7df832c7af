"""Input validation and `ImageAsset` creation.

Everything here runs before an image enters the tagging pipeline: unsupported
types and oversized files are rejected with `ValidationError` so that the
pipeline itself never sees them.
"""

from __future__ import annotations

from typing import Any
import uuid

from loguru import logger

from core.errors import ValidationError
from core.models import ImageAsset

DEFAULT_MAX_FILE_MB = 20
JPEG_TYPE = "image/jpeg"


def validate_file_size(name: str, size: int, max_bytes: int) -> None:
    """Raise `ValidationError` when `size` exceeds `max_bytes`."""
    if size > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        raise ValidationError(f"File too large: {name} (max {max_mb:g}MB)")


def generate_id() -> str:
    """Return a short random identifier for a session asset."""
    return uuid.uuid4().hex[:12]


class AssetFactory:
    """Validates selected files and turns them into `ImageAsset` objects."""

    def __init__(self, normalizer: Any, codec: Any, settings: object | None = None) -> None:
        """Create a factory.

        Args:
            normalizer: Provides `resolve_media_type` and `make_preview`.
            codec: Provides `load` and `read_gps` for existing GPS discovery.
            settings: Optional `JsonSettings`; reads `intake.max_file_mb`.
        """
        self._normalizer = normalizer
        self._codec = codec
        max_mb: float = DEFAULT_MAX_FILE_MB
        if settings is not None:
            try:
                max_mb = float(settings.get("intake.max_file_mb", DEFAULT_MAX_FILE_MB))
            except (ValueError, TypeError):
                logger.warning("Invalid intake.max_file_mb; using {}MB", DEFAULT_MAX_FILE_MB)
        self._max_bytes = int(max_mb * 1024 * 1024)

    @property
    def max_bytes(self) -> int:
        """Largest accepted file in bytes."""
        return self._max_bytes

    def create(self, name: str, content: bytes, declared_type: str | None = None) -> ImageAsset:
        """Validate a selected file and build its asset.

        Raises:
            ValidationError: Unsupported type or file larger than the limit.
        """
        media_type = self._normalizer.resolve_media_type(name, declared_type)
        if media_type is None:
            raise ValidationError(f"Unsupported file type: {name}")
        validate_file_size(name, len(content), self._max_bytes)

        existing = None
        if media_type == JPEG_TYPE:
            existing = self._codec.read_gps(self._codec.load(content))
        preview = self._normalizer.make_preview(content, media_type)
        asset = ImageAsset(
            id=generate_id(),
            name=name,
            content=content,
            media_type=media_type,
            size=len(content),
            preview=preview,
            existing_gps=existing,
        )
        logger.info(
            "Added {} ({}, {} bytes, existing GPS: {})",
            name,
            media_type,
            asset.size,
            "yes" if existing else "no",
        )
        return asset
