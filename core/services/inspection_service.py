"""Read-only metadata inspection for the "find GPS in a photo" flow."""

from __future__ import annotations

from typing import Any

from core.models import ImageMetadata

JPEG_TYPE = "image/jpeg"


class MetadataInspector:
    """Extracts `ImageMetadata` from any supported image without modifying it.

    JPEG bytes go straight to the codec. For other formats the raw EXIF block
    is pulled out through the normalizer's decoder and parsed by the same
    codec, so HEIC photos straight off a phone still report their location.
    """

    def __init__(self, normalizer: Any, codec: Any) -> None:
        self._normalizer = normalizer
        self._codec = codec

    def inspect(self, content: bytes, media_type: str | None) -> ImageMetadata:
        """Return the metadata of `content`; empty metadata when none is readable."""
        if media_type == JPEG_TYPE:
            container = self._codec.load(content)
        else:
            container = self._codec.load_exif_block(self._normalizer.extract_exif_block(content))
        return self._codec.read_metadata(container)
