"""Place search adapter backed by geopy's Nominatim client."""

from __future__ import annotations

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim
from loguru import logger

from core.errors import ExternalCollaboratorError
from core.models import Coordinate, Place
from core.services.interfaces import IGeocoder

DEFAULT_USER_AGENT = "GeoTagger/1.0"
DEFAULT_TIMEOUT = 10


class NominatimGeocoder(IGeocoder):
    """Forward and reverse place search against OpenStreetMap Nominatim."""

    def __init__(self, settings: object | None = None, client: object | None = None) -> None:
        """Create the geocoder.

        Args:
            settings: Optional `JsonSettings`; reads `geocoder.user_agent` and
                `geocoder.timeout`.
            client: Pre-built geopy geocoder (mainly for tests).
        """
        user_agent = DEFAULT_USER_AGENT
        timeout = DEFAULT_TIMEOUT
        if settings is not None:
            user_agent = str(settings.get("geocoder.user_agent", user_agent) or user_agent)
            try:
                timeout = int(settings.get("geocoder.timeout", timeout) or timeout)
            except (ValueError, TypeError):
                timeout = DEFAULT_TIMEOUT
        self._client = client or Nominatim(user_agent=user_agent, timeout=timeout)

    def search(self, query: str) -> Place | None:
        """Return the first match for `query`, or None when nothing matches."""
        query = (query or "").strip()
        if not query:
            return None
        try:
            location = self._client.geocode(query, exactly_one=True)
        except GeopyError as ex:
            logger.warning("Place search failed for {!r}: {}", query, ex)
            raise ExternalCollaboratorError(f"Search failed: {ex}") from ex
        if location is None:
            return None
        return Place(
            latitude=float(location.latitude),
            longitude=float(location.longitude),
            label=str(location.address),
        )

    def reverse(self, coord: Coordinate) -> Place | None:
        """Return the address label nearest to `coord`, or None."""
        try:
            location = self._client.reverse((coord.latitude, coord.longitude), exactly_one=True)
        except GeopyError as ex:
            logger.warning("Reverse lookup failed for {}: {}", coord, ex)
            raise ExternalCollaboratorError(f"Reverse lookup failed: {ex}") from ex
        if location is None:
            return None
        return Place(
            latitude=coord.latitude, longitude=coord.longitude, label=str(location.address)
        )
