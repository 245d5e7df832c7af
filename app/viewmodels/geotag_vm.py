"""ViewModel for a geotagging session: selected images, location and text fields."""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from core.errors import ExternalCollaboratorError, ValidationError
from core.models import AssetStatus, BatchResult, Coordinate, GeotagRequest, ImageAsset, Place
from core.services.batch_service import BatchOrchestrator, ProgressCallback
from core.services.coordinate_service import validate_coordinate
from core.services.interfaces import IGeocoder
from core.services.validation_service import AssetFactory

DEFAULT_LOCATION = Coordinate(40.7128, -74.0060)
DEFAULT_MAX_FILES = 20


class GeotagVM:
    """Session state mediating between the UI and the tagging services.

    Nothing is persisted; `reset()` or dropping the object ends the session.
    """

    def __init__(
        self,
        factory: AssetFactory,
        orchestrator: BatchOrchestrator,
        geocoder: IGeocoder | None = None,
        max_files: int = DEFAULT_MAX_FILES,
    ) -> None:
        """Create a GeotagVM.

        Args:
            factory: Validates files and builds assets.
            orchestrator: Runs the batch and delivers outputs.
            geocoder: Optional place search used by `search_place`.
            max_files: Maximum number of images held at once.
        """
        self._factory = factory
        self._orchestrator = orchestrator
        self._geocoder = geocoder
        self._max_files = max(1, int(max_files))
        self.assets: list[ImageAsset] = []
        self.location: Coordinate = DEFAULT_LOCATION
        self.location_label: str | None = None
        self.description: str = ""
        self.keywords: str = ""
        self.processed_count = 0
        self.is_processing = False
        self.last_result: BatchResult | None = None
        # Bumped on clear/reset so late results from a previous run are dropped
        self._generation = 0

    def add_files(self, files: Iterable[tuple[str, bytes, str | None]]) -> list[str]:
        """Add `(name, content, declared_type)` files; return per-file rejection messages."""
        errors: list[str] = []
        for name, content, declared in files:
            if len(self.assets) >= self._max_files:
                errors.append(f"Maximum {self._max_files} images allowed")
                break
            try:
                self.assets.append(self._factory.create(name, content, declared))
            except ValidationError as ex:
                logger.warning("Rejected {}: {}", name, ex)
                errors.append(str(ex))
        return errors

    def remove(self, asset_id: str) -> None:
        """Remove a single image from the session."""
        self.assets = [a for a in self.assets if a.id != asset_id]

    def clear(self) -> None:
        """Discard all images; an in-flight run's results will be ignored."""
        self._generation += 1
        self.assets = []
        self.processed_count = 0
        self.last_result = None

    def reset(self) -> None:
        """Clear images and restore the default form state."""
        self.clear()
        self.location = DEFAULT_LOCATION
        self.location_label = None
        self.description = ""
        self.keywords = ""

    def set_location(self, latitude: object, longitude: object) -> Coordinate:
        """Validate and store the target location (map click, form input, device)."""
        self.location = validate_coordinate(latitude, longitude)
        self.location_label = None
        return self.location

    def apply_place(self, place: Place) -> Coordinate:
        """Use a place-search result as the target location."""
        self.location = place.coordinate
        self.location_label = place.label
        return self.location

    def search_place(self, query: str) -> Place | None:
        """Search for `query` and apply the hit; None when nothing matches.

        Raises:
            ExternalCollaboratorError: Search unavailable or failed.
        """
        if self._geocoder is None:
            raise ExternalCollaboratorError("Place search is not configured")
        place = self._geocoder.search(query)
        if place is not None:
            self.apply_place(place)
        return place

    def build_request(self) -> GeotagRequest:
        """Snapshot the current form state into an immutable request."""
        return GeotagRequest(
            coordinate=self.location,
            description=self.description or None,
            keywords=self.keywords or None,
        )

    def run(self, on_progress: ProgressCallback | None = None) -> BatchResult | None:
        """Tag all images with the current form state.

        Returns None when the session was cleared while the batch was running.

        Raises:
            ValidationError: No images were added.
        """
        generation = self._generation
        assets = list(self.assets)
        request = self.build_request()
        self.processed_count = 0
        self.is_processing = True

        def _progress(asset: ImageAsset, index: int, total: int) -> None:
            if generation != self._generation:
                return
            if asset.status in (AssetStatus.SUCCESS, AssetStatus.ERROR):
                self.processed_count = index + 1
            if on_progress is not None:
                on_progress(asset, index, total)

        try:
            result = self._orchestrator.run_batch(assets, request, _progress)
        finally:
            self.is_processing = False

        if generation != self._generation:
            logger.info("Session cleared during batch; discarding {} results", len(result.items))
            return None
        self.last_result = result
        return result

    @property
    def image_count(self) -> int:
        """Number of images currently held."""
        return len(self.assets)

    @property
    def has_images(self) -> bool:
        """True when at least one image is held."""
        return bool(self.assets)
