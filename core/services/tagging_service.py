"""Single-image tagging pipeline.

normalize -> load EXIF -> write GPS/description/keywords -> dump -> splice.
The pipeline is decoupled from Pillow and piexif through the accessor
protocols below; the infrastructure layer provides the implementations.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from core.models import Coordinate, GeotagRequest, ImageAsset, ImageMetadata, TaggedImage

OUTPUT_SUFFIX = "_geotagged"
OUTPUT_EXTENSION = ".jpg"


class _Normalizer(Protocol):
    """Turns an input image into JPEG bytes."""

    def resolve_media_type(self, name: str, declared: str | None) -> str | None:
        """Return the canonical media type, or None when unsupported."""
        raise NotImplementedError

    def needs_normalization(self, media_type: str | None) -> bool:
        """True when the bytes must be re-encoded before tagging."""
        raise NotImplementedError

    def normalize(self, content: bytes, media_type: str | None) -> Any:
        """Return an object with a `data` attribute holding JPEG bytes."""
        raise NotImplementedError


class _Codec(Protocol):
    """Reads and writes the EXIF segment of JPEG bytes."""

    def load(self, buffer: bytes) -> Any:
        """Parse the EXIF segment; never raises."""
        raise NotImplementedError

    def read_gps(self, container: Any) -> Coordinate | None:
        """Return the stored coordinate, if complete."""
        raise NotImplementedError

    def read_metadata(self, container: Any) -> ImageMetadata:
        """Return the typed metadata view."""
        raise NotImplementedError

    def write_gps(self, container: Any, coord: Coordinate) -> None:
        """Replace the GPS group."""
        raise NotImplementedError

    def write_description(self, container: Any, text: str) -> None:
        """Set the image description."""
        raise NotImplementedError

    def write_keywords(self, container: Any, text: str) -> None:
        """Set the keyword tags."""
        raise NotImplementedError

    def dump(self, container: Any) -> bytes:
        """Serialize the container."""
        raise NotImplementedError

    def splice(self, segment: bytes, buffer: bytes) -> bytes:
        """Insert the serialized segment into JPEG bytes."""
        raise NotImplementedError


def output_filename(name: str) -> str:
    """Return `<basename>_geotagged.jpg`; output is always JPEG."""
    base = Path(name).stem or "image"
    return f"{base}{OUTPUT_SUFFIX}{OUTPUT_EXTENSION}"


class TaggingPipeline:
    """Embeds a `GeotagRequest` into one image."""

    def __init__(self, normalizer: _Normalizer, codec: _Codec) -> None:
        self._normalizer = normalizer
        self._codec = codec

    def tag_image(self, asset: ImageAsset, request: GeotagRequest) -> TaggedImage:
        """Return a geotagged JPEG for `asset` without mutating it.

        Raises:
            NormalizationError: The source could not be converted to JPEG.
            CodecError: The JPEG stream could not be rewritten.
        """
        content = asset.content
        if self._normalizer.needs_normalization(asset.media_type):
            content = self._normalizer.normalize(asset.content, asset.media_type).data

        container = self._codec.load(content)
        previous = self._codec.read_gps(container)
        if previous is not None:
            logger.info(
                "{} already tagged at {:.6f}, {:.6f}; overwriting",
                asset.name,
                previous.latitude,
                previous.longitude,
            )

        self._codec.write_gps(container, request.coordinate)
        if request.description:
            self._codec.write_description(container, request.description)
        if request.keywords:
            self._codec.write_keywords(container, request.keywords)

        data = self._codec.splice(self._codec.dump(container), content)
        return TaggedImage(
            file_name=output_filename(asset.name),
            data=data,
            previous_gps=previous,
        )
