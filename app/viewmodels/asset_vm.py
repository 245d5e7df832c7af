"""Lightweight view model wrapper around `ImageAsset`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from core.models import AssetStatus, ImageAsset
from core.services.coordinate_service import format_decimal

_STATUS_LABELS = {
    AssetStatus.PENDING: "Pending",
    AssetStatus.PROCESSING: "Processing",
    AssetStatus.SUCCESS: "Done",
    AssetStatus.ERROR: "Failed",
}


def format_size(size_bytes: int) -> str:
    """Format a byte count as B/KB/MB with one decimal."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


@dataclass
class AssetVM:
    """Expose convenient properties for bindings/templates."""

    asset: ImageAsset

    @property
    def file_name(self) -> str:
        """Base name of the selected file."""
        return Path(self.asset.name).name

    @property
    def size_text(self) -> str:
        """Human-readable file size."""
        return format_size(int(self.asset.size or 0))

    @property
    def status_text(self) -> str:
        """Status label, including the error message on failure."""
        label = _STATUS_LABELS[self.asset.status]
        if self.asset.status is AssetStatus.ERROR and self.asset.error:
            return f"{label}: {self.asset.error}"
        return label

    @property
    def existing_gps_text(self) -> str | None:
        """Previously embedded location as an exchange string, if any."""
        if self.asset.existing_gps is None:
            return None
        return format_decimal(self.asset.existing_gps)

    @property
    def is_converted(self) -> bool:
        """True when the output will be re-encoded to JPEG."""
        return self.asset.media_type != "image/jpeg"
