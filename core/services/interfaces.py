"""Core service interfaces for the collaborators around the tagging core.

The pipeline only consumes what these produce: coordinates from place search
or device location, and a place to put finished files. Implementations live
in the infrastructure layer.
"""

from __future__ import annotations

from core.models import Coordinate, Place


class IGeocoder:
    """Interface for forward and reverse place search."""

    def search(self, query: str) -> Place | None:
        """Return the best match for `query`, or None when nothing matches.

        Raises:
            ExternalCollaboratorError: The search service failed or timed out.
        """
        raise NotImplementedError

    def reverse(self, coord: Coordinate) -> Place | None:
        """Return a place label for `coord`, or None when unknown."""
        raise NotImplementedError


class ILocationProvider:
    """Interface for device geolocation."""

    def current_location(self) -> Coordinate:
        """Return the device position.

        Raises:
            ExternalCollaboratorError: Permission denied, unavailable or timed out.
        """
        raise NotImplementedError


class IOutputSink:
    """Interface for delivering finished files."""

    def save_file(self, name: str, data: bytes) -> str:
        """Store a single output file and return where it went."""
        raise NotImplementedError

    def save_archive(self, name: str, entries: list[tuple[str, bytes]]) -> str:
        """Store `entries` as one archive named `name` and return where it went."""
        raise NotImplementedError
