from __future__ import annotations

import argparse
from pathlib import Path
import sys

from loguru import logger

from app.viewmodels.asset_vm import AssetVM
from app.viewmodels.geotag_vm import DEFAULT_MAX_FILES, GeotagVM
from core.errors import GeotagError
from core.models import BatchOutcome, ImageAsset
from core.services.batch_service import BatchOrchestrator
from core.services.coordinate_service import format_cardinal, format_decimal
from core.services.export_service import export_json
from core.services.inspection_service import MetadataInspector
from core.services.tagging_service import TaggingPipeline
from core.services.validation_service import AssetFactory
from infrastructure.exif_codec import MetadataCodec
from infrastructure.image_service import FormatNormalizer
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.output_sink import DirectoryOutputSink
from infrastructure.settings import JsonSettings

BASE_DIR = Path(__file__).parent

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FAILED = 2


def _load_settings(path: str | None) -> JsonSettings:
    if path:
        return JsonSettings(path)
    default = BASE_DIR / "settings.json"
    if default.exists():
        return JsonSettings(default)
    return JsonSettings()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geotagger", description="Embed or read GPS location metadata in photos."
    )
    parser.add_argument("--settings", help="Path to settings.json")
    parser.add_argument("--log-dir", help="Directory for log files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Also log to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    tag = sub.add_parser("tag", help="Write a location into one or more images")
    tag.add_argument("--lat", required=True, help="Latitude in decimal degrees")
    tag.add_argument("--lng", required=True, help="Longitude in decimal degrees")
    tag.add_argument("--description", default="", help="Image description")
    tag.add_argument("--keywords", default="", help="Comma-separated keywords")
    tag.add_argument("--out", help="Output directory (default: settings output.directory or .)")
    tag.add_argument("files", nargs="+", help="Images (JPEG, PNG, WebP, HEIC)")

    read = sub.add_parser("read", help="Show the location stored in an image")
    read.add_argument("--json", action="store_true", help="Print the full metadata export")
    read.add_argument("file", help="Image to inspect")
    return parser


def _print_progress(asset: ImageAsset, index: int, total: int) -> None:
    vm = AssetVM(asset)
    print(f"[{index + 1}/{total}] {vm.file_name} ({vm.size_text}): {vm.status_text}")


def _cmd_tag(args: argparse.Namespace, settings: JsonSettings) -> int:
    codec = MetadataCodec()
    normalizer = FormatNormalizer(settings)
    out_dir = args.out or settings.get("output.directory") or "."
    pipeline = TaggingPipeline(normalizer, codec)
    orchestrator = BatchOrchestrator(pipeline, DirectoryOutputSink(out_dir))
    vm = GeotagVM(
        AssetFactory(normalizer, codec, settings),
        orchestrator,
        max_files=int(settings.get("intake.max_files", DEFAULT_MAX_FILES) or DEFAULT_MAX_FILES),
    )

    vm.set_location(args.lat, args.lng)
    vm.description = args.description
    vm.keywords = args.keywords

    files = []
    for name in args.files:
        path = Path(name)
        try:
            files.append((path.name, path.read_bytes(), None))
        except OSError as ex:
            print(f"Cannot read {name}: {ex}", file=sys.stderr)
    for message in vm.add_files(files):
        print(message, file=sys.stderr)
    for asset in vm.assets:
        if asset.existing_gps is not None:
            print(f"{asset.name}: replacing existing location {format_decimal(asset.existing_gps)}")

    print(f"Tagging {vm.image_count} image(s) at {format_cardinal(vm.location)}")
    result = vm.run(_print_progress)
    if result is None:
        return EXIT_FAILED
    print(result.summary)
    if result.delivered_path:
        print(f"Saved: {result.delivered_path}")
    if result.delivery_error:
        print(f"Could not save output: {result.delivery_error}", file=sys.stderr)
        return EXIT_FAILED
    if result.outcome is BatchOutcome.SUCCESS:
        return EXIT_OK
    return EXIT_PARTIAL if result.outcome is BatchOutcome.PARTIAL else EXIT_FAILED


def _cmd_read(args: argparse.Namespace, settings: JsonSettings) -> int:
    normalizer = FormatNormalizer(settings)
    path = Path(args.file)
    media_type = normalizer.resolve_media_type(path.name, None)
    if media_type is None:
        print(f"Unsupported file type: {path.name}", file=sys.stderr)
        return EXIT_FAILED
    metadata = MetadataInspector(normalizer, MetadataCodec()).inspect(path.read_bytes(), media_type)
    if args.json:
        print(export_json(metadata))
        return EXIT_OK
    coord = metadata.coordinate
    if coord is None:
        print("No GPS data: this image has no location information embedded")
        return EXIT_PARTIAL
    print(format_decimal(coord))
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        settings = _load_settings(args.settings)
    except (OSError, ValueError) as ex:
        print(f"Invalid settings: {ex}", file=sys.stderr)
        return EXIT_FAILED
    log_dir = args.log_dir or settings.get("logging.directory")
    init_logging(log_dir, level=str(settings.get("logging.level", "INFO")), console=args.verbose)

    try:
        if args.command == "tag":
            return _cmd_tag(args, settings)
        return _cmd_read(args, settings)
    except GeotagError as ex:
        logger.error("{} failed: {}", args.command, ex)
        print(f"Error: {ex}", file=sys.stderr)
        latest = find_latest_log_file(log_dir)
        if latest:
            print(f"Details: {latest}", file=sys.stderr)
        return EXIT_FAILED
    except OSError as ex:
        logger.error("{} failed: {}", args.command, ex)
        print(f"Error: {ex}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
