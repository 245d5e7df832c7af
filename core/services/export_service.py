"""Structured export of read metadata."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any

from core.models import ImageMetadata

EXPORT_FILENAME = "image-metadata.json"


def build_export(metadata: ImageMetadata, extracted_at: datetime | None = None) -> dict[str, Any]:
    """Group `metadata` into the nested export layout.

    Groups are `gps`, `dateTime`, `camera`, `image`, `software` and
    `settings`; absent values are kept as None so the layout is stable.
    """
    when = extracted_at or datetime.now(timezone.utc)
    return {
        "extracted": when.isoformat(),
        "gps": {
            "latitude": metadata.latitude,
            "longitude": metadata.longitude,
            "altitude": metadata.altitude,
        },
        "dateTime": metadata.date_time,
        "camera": {"make": metadata.make, "model": metadata.model},
        "image": {
            "width": metadata.width,
            "height": metadata.height,
            "orientation": metadata.orientation,
        },
        "software": metadata.software,
        "settings": {
            "exposureTime": metadata.exposure_time,
            "fNumber": metadata.f_number,
            "iso": metadata.iso,
            "focalLength": metadata.focal_length,
            "flash": metadata.flash,
        },
    }


def export_json(metadata: ImageMetadata, extracted_at: datetime | None = None) -> str:
    """Serialize `build_export` as indented JSON."""
    return json.dumps(build_export(metadata, extracted_at), indent=2, ensure_ascii=False)
