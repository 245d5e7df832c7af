"""Sequential batch tagging with per-item status and aggregate delivery.

Items are processed strictly one after another in input order. A failure in
one image is recorded on that image and never aborts the rest of the batch.
One success is delivered as a single file, several as one zip archive.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

from loguru import logger

from core.errors import GeotagError, ValidationError
from core.models import (
    AssetStatus,
    BatchItemResult,
    BatchOutcome,
    BatchResult,
    GeotagRequest,
    ImageAsset,
    TaggedImage,
)
from core.services.interfaces import IOutputSink
from core.services.tagging_service import TaggingPipeline

ProgressCallback = Callable[[ImageAsset, int, int], None]


def _plural(count: int) -> str:
    return f"{count} image{'s' if count != 1 else ''}"


def summarize(result: BatchResult) -> str:
    """User-facing message for the three batch outcomes."""
    outcome = result.outcome
    if outcome is BatchOutcome.SUCCESS:
        return f"{_plural(result.succeeded)} geotagged successfully"
    if outcome is BatchOutcome.PARTIAL:
        return (
            f"{_plural(result.succeeded)} geotagged, {result.failed} failed. "
            "Retry the failed images."
        )
    return "Geotagging failed. Please check your images and try again."


def archive_entries(outputs: Sequence[TaggedImage]) -> list[tuple[str, bytes]]:
    """Return (name, data) pairs with duplicate names made unique (`_2`, `_3`, ...)."""
    seen: dict[str, int] = {}
    entries: list[tuple[str, bytes]] = []
    for out in outputs:
        name = out.file_name
        count = seen.get(name.lower(), 0) + 1
        seen[name.lower()] = count
        if count > 1:
            path = Path(name)
            name = f"{path.stem}_{count}{path.suffix}"
        entries.append((name, out.data))
    return entries


class BatchOrchestrator:
    """Runs the tagging pipeline over an ordered list of assets."""

    def __init__(self, pipeline: TaggingPipeline, sink: IOutputSink | None = None) -> None:
        """Create an orchestrator.

        Args:
            pipeline: Single-image tagging pipeline.
            sink: Where finished files go; None skips delivery.
        """
        self._pipeline = pipeline
        self._sink = sink

    def run_batch(
        self,
        assets: Sequence[ImageAsset],
        request: GeotagRequest,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Tag every asset in order and deliver the successful outputs.

        Args:
            assets: Images to tag; their `status`/`error` are updated in place.
            request: Coordinate and optional text fields to embed.
            on_progress: Called as `(asset, index, total)` after each status change.
                Exceptions it raises are logged and ignored.

        Raises:
            ValidationError: `assets` is empty.
        """
        if not assets:
            raise ValidationError("Please add at least one image")

        total = len(assets)
        result = BatchResult()
        for asset in assets:
            asset.status = AssetStatus.PENDING
            asset.error = None

        for index, asset in enumerate(assets):
            asset.status = AssetStatus.PROCESSING
            self._notify(on_progress, asset, index, total)
            item = self._process(asset, request)
            asset.status = item.status
            asset.error = item.error
            result.items.append(item)
            self._notify(on_progress, asset, index, total)

        self._deliver(result)
        result.summary = summarize(result)
        logger.info(
            "Batch finished: {} succeeded, {} failed ({})",
            result.succeeded,
            result.failed,
            result.outcome.value,
        )
        return result

    def _process(self, asset: ImageAsset, request: GeotagRequest) -> BatchItemResult:
        try:
            output = self._pipeline.tag_image(asset, request)
        except GeotagError as ex:
            logger.error("Geotagging {} failed: {}", asset.name, ex)
            return BatchItemResult(asset_id=asset.id, status=AssetStatus.ERROR, error=str(ex))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error while geotagging {}", asset.name)
            return BatchItemResult(
                asset_id=asset.id, status=AssetStatus.ERROR, error=f"Failed to process: {ex}"
            )
        logger.info("Geotagged {} -> {} ({} bytes)", asset.name, output.file_name, len(output.data))
        return BatchItemResult(asset_id=asset.id, status=AssetStatus.SUCCESS, output=output)

    def _deliver(self, result: BatchResult) -> None:
        outputs = result.outputs
        if self._sink is None or not outputs:
            return
        try:
            if len(outputs) == 1:
                result.delivered_path = self._sink.save_file(outputs[0].file_name, outputs[0].data)
            else:
                ts = datetime.now().strftime("%Y%m%d_%H%M%S")
                result.delivered_path = self._sink.save_archive(
                    f"geotagged_{ts}.zip", archive_entries(outputs)
                )
            logger.info("Delivered output: {}", result.delivered_path)
        except OSError as ex:
            logger.error("Saving output failed: {}", ex)
            result.delivery_error = str(ex)

    @staticmethod
    def _notify(
        callback: ProgressCallback | None, asset: ImageAsset, index: int, total: int
    ) -> None:
        if callback is None:
            return
        try:
            callback(asset, index, total)
        except Exception:  # pylint: disable=broad-exception-caught
            # Progress display must not abort the batch
            logger.exception("Progress callback failed for {}", asset.name)
