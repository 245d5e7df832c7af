"""Core domain models for images, geotag requests and batch results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import math

from core.errors import ValidationError

Rational = tuple[int, int]
DmsRational = tuple[Rational, Rational, Rational]


@dataclass(frozen=True)
class Coordinate:
    """A (latitude, longitude) pair in decimal degrees.

    Bounds are checked on construction; values are never clamped.
    """

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat = float(self.latitude)
        lng = float(self.longitude)
        if math.isnan(lat) or not -90.0 <= lat <= 90.0:
            raise ValidationError(f"Latitude must be between -90 and 90, got {self.latitude}")
        if math.isnan(lng) or not -180.0 <= lng <= 180.0:
            raise ValidationError(f"Longitude must be between -180 and 180, got {self.longitude}")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lng)


@dataclass(frozen=True)
class Place:
    """A place-search hit: coordinate plus a human-readable label."""

    latitude: float
    longitude: float
    label: str

    @property
    def coordinate(self) -> Coordinate:
        """Validated coordinate of this place."""
        return Coordinate(self.latitude, self.longitude)


class AssetStatus(str, Enum):
    """Processing state of a single image within a batch."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ImageAsset:
    """A user-selected image held for the current session only."""

    id: str
    name: str
    content: bytes
    media_type: str
    size: int
    preview: bytes | None = None
    existing_gps: Coordinate | None = None
    status: AssetStatus = AssetStatus.PENDING
    error: str | None = None


@dataclass(frozen=True)
class GeotagRequest:
    """Coordinate to write plus optional description and keywords.

    Attributes:
        coordinate: Location embedded into every image of the batch.
        description: Free text for the image description tag.
        keywords: Comma-delimited keywords, stored verbatim.
    """

    coordinate: Coordinate
    description: str | None = None
    keywords: str | None = None

    def __post_init__(self) -> None:
        # Blank form fields mean "not provided"
        if self.description is not None and not self.description.strip():
            object.__setattr__(self, "description", None)
        if self.keywords is not None and not self.keywords.strip():
            object.__setattr__(self, "keywords", None)


@dataclass(frozen=True)
class TaggedImage:
    """Output artifact of the tagging pipeline."""

    file_name: str
    data: bytes
    media_type: str = "image/jpeg"
    previous_gps: Coordinate | None = None


@dataclass
class BatchItemResult:
    """Per-item outcome, in the order the items were submitted."""

    asset_id: str
    status: AssetStatus
    output: TaggedImage | None = None
    error: str | None = None


class BatchOutcome(str, Enum):
    """Aggregate outcome of a batch run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass
class BatchResult:
    """Outcome of a batch run.

    Attributes:
        items: Per-item results in input order.
        delivered_path: File or archive written by the output sink, if any.
        delivery_error: Reason the sink could not write the outputs.
        summary: User-facing summary message.
    """

    items: list[BatchItemResult] = field(default_factory=list)
    delivered_path: str | None = None
    delivery_error: str | None = None
    summary: str = ""

    @property
    def succeeded(self) -> int:
        """Number of items that were tagged successfully."""
        return sum(1 for it in self.items if it.status is AssetStatus.SUCCESS)

    @property
    def failed(self) -> int:
        """Number of items that ended in error."""
        return sum(1 for it in self.items if it.status is AssetStatus.ERROR)

    @property
    def outcome(self) -> BatchOutcome:
        """Full success, partial success or total failure."""
        if self.succeeded == 0:
            return BatchOutcome.FAILURE
        if self.failed == 0:
            return BatchOutcome.SUCCESS
        return BatchOutcome.PARTIAL

    @property
    def outputs(self) -> list[TaggedImage]:
        """Successful outputs in input order."""
        return [it.output for it in self.items if it.output is not None]


@dataclass
class ImageMetadata:
    """Typed view of the EXIF fields the application reads."""

    latitude: float | None = None
    longitude: float | None = None
    altitude: float | None = None
    date_time: str | None = None
    make: str | None = None
    model: str | None = None
    width: int | None = None
    height: int | None = None
    orientation: str | None = None
    software: str | None = None
    exposure_time: str | None = None
    f_number: str | None = None
    iso: int | None = None
    focal_length: str | None = None
    flash: str | None = None
    description: str | None = None
    keywords: str | None = None

    @property
    def has_gps(self) -> bool:
        """True when both latitude and longitude were read."""
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinate(self) -> Coordinate | None:
        """GPS position as a `Coordinate`, or None when absent."""
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(self.latitude, self.longitude)
