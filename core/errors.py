"""Error taxonomy shared by the tagging pipeline and its adapters."""

from __future__ import annotations


class GeotagError(Exception):
    """Base class for all geotagging failures."""


class ValidationError(GeotagError):
    """Input rejected before it enters the pipeline.

    Raised for unsupported media types, oversized files and out-of-range
    coordinates. Always recoverable by retrying with different input.
    """


class NormalizationError(GeotagError):
    """Source image could not be decoded or re-encoded as JPEG."""


class CodecError(GeotagError):
    """Bytes could not be parsed as JPEG or the EXIF segment not re-serialized."""


class ExternalCollaboratorError(GeotagError):
    """Place search or device location failed; transient, safe to retry."""
