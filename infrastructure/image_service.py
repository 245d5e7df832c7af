"""Image decoding, JPEG normalization and preview utilities.

Everything the EXIF codec writes must be a JPEG. PNG and WebP inputs are
decoded with Pillow and re-encoded; HEIC/HEIF goes through pillow-heif. JPEG
input passes through untouched so its pixels and metadata are preserved.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
import hashlib
import io
from pathlib import Path

from loguru import logger
from PIL import Image, ImageOps

from core.errors import NormalizationError

try:  # pragma: no cover - optional dependency
    from pillow_heif import register_heif_opener  # type: ignore

    register_heif_opener()
    PIL_HEIF_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    PIL_HEIF_AVAILABLE = False

JPEG_TYPE = "image/jpeg"
PNG_TYPE = "image/png"
WEBP_TYPE = "image/webp"
HEIC_TYPE = "image/heic"

# Declared type aliases -> canonical type
_TYPE_ALIASES = {
    "image/jpeg": JPEG_TYPE,
    "image/jpg": JPEG_TYPE,
    "image/pjpeg": JPEG_TYPE,
    "image/png": PNG_TYPE,
    "image/webp": WEBP_TYPE,
    "image/heic": HEIC_TYPE,
    "image/heif": HEIC_TYPE,
}

_EXTENSION_TYPES = {
    ".jpg": JPEG_TYPE,
    ".jpeg": JPEG_TYPE,
    ".png": PNG_TYPE,
    ".webp": WEBP_TYPE,
    ".heic": HEIC_TYPE,
    ".heif": HEIC_TYPE,
}

SUPPORTED_TYPES = frozenset(_EXTENSION_TYPES.values())
RASTER_TYPES = frozenset({PNG_TYPE, WEBP_TYPE})

Decoder = Callable[[bytes], "Image.Image"]


def resolve_media_type(name: str, declared: str | None) -> str | None:
    """Return the canonical media type from the declared type or file extension."""
    if declared:
        canonical = _TYPE_ALIASES.get(declared.strip().lower())
        if canonical:
            return canonical
    return _EXTENSION_TYPES.get(Path(name).suffix.lower())


def _compute_cache_key(content: bytes, size_key: int) -> str:
    """Compute a stable cache key from the content digest and requested side."""
    digest = hashlib.sha1(content).hexdigest()
    return f"{digest}|{int(size_key)}"


def _decode_heif(data: bytes) -> Image.Image:
    """Decode HEIC/HEIF bytes through the pillow-heif opener."""
    if not PIL_HEIF_AVAILABLE:
        raise NormalizationError("HEIC support requires the pillow-heif package")
    im = Image.open(io.BytesIO(data))
    im.load()
    return im


def _decode_pillow(data: bytes) -> Image.Image:
    im = Image.open(io.BytesIO(data))
    im.load()
    return im


def _to_rgb_surface(im: Image.Image) -> Image.Image:
    """Apply EXIF orientation and flatten onto an opaque RGB surface."""
    try:
        im = ImageOps.exif_transpose(im)
    except (OSError, ValueError, AttributeError) as ex:
        logger.debug("exif_transpose skipped: {}", ex)
    if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
        rgba = im.convert("RGBA")
        surface = Image.new("RGB", rgba.size, (255, 255, 255))
        surface.paste(rgba, mask=rgba.getchannel("A"))
        return surface
    if im.mode != "RGB":
        return im.convert("RGB")
    return im


@dataclass(frozen=True)
class NormalizedImage:
    """JPEG bytes ready for the EXIF codec."""

    data: bytes
    media_type: str = JPEG_TYPE
    converted: bool = False


class _LRUCache:
    def __init__(self, capacity: int) -> None:
        self._cap = max(1, int(capacity or 1))
        self._data: OrderedDict[str, bytes] = OrderedDict()

    def get(self, key: str) -> bytes | None:
        """Return cached bytes for key, moving it to the MRU position."""
        item = self._data.get(key)
        if item is None:
            return None
        self._data.move_to_end(key)
        return item

    def put(self, key: str, value: bytes) -> None:
        """Insert or update `key`, evicting LRU entries when over capacity."""
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self._cap:
            self._data.popitem(last=False)

    def __len__(self) -> int:
        return len(self._data)


class FormatNormalizer:
    """Turns any supported input image into JPEG bytes."""

    def __init__(
        self,
        settings: object | None = None,
        heic_decoder: Decoder | None = None,
        raster_decoder: Decoder | None = None,
    ) -> None:
        """Create a normalizer.

        Args:
            settings: Optional `JsonSettings`; reads `normalizer.*` keys.
            heic_decoder: Decoder for HEIC/HEIF bytes (defaults to pillow-heif).
            raster_decoder: Decoder for PNG/WebP bytes (defaults to Pillow).
        """
        self._quality = 95
        self._preview_side = 512
        cache_cap = 64
        if settings is not None:
            try:
                self._quality = int(settings.get("normalizer.jpeg_quality", 95) or 95)
                self._preview_side = int(settings.get("normalizer.preview_side", 512) or 512)
                cache_cap = int(settings.get("normalizer.preview_cache", 64) or 64)
            except (ValueError, TypeError):
                logger.warning("Invalid normalizer settings; using defaults")
        self._quality = min(max(self._quality, 1), 100)
        self._heic_decoder = heic_decoder or _decode_heif
        self._raster_decoder = raster_decoder or _decode_pillow
        self._previews = _LRUCache(cache_cap)

    @property
    def quality(self) -> int:
        """JPEG quality used when re-encoding."""
        return self._quality

    def resolve_media_type(self, name: str, declared: str | None) -> str | None:
        """Canonical media type for an input file, or None when unsupported."""
        return resolve_media_type(name, declared)

    def needs_normalization(self, media_type: str | None) -> bool:
        """True when `media_type` is not already JPEG."""
        return _TYPE_ALIASES.get((media_type or "").lower()) != JPEG_TYPE

    def normalize(self, content: bytes, media_type: str | None) -> NormalizedImage:
        """Return JPEG bytes for `content`.

        Raises:
            NormalizationError: The image could not be decoded or re-encoded.
        """
        canonical = _TYPE_ALIASES.get((media_type or "").lower())
        if canonical == JPEG_TYPE:
            return NormalizedImage(data=content, converted=False)
        if canonical == HEIC_TYPE:
            im = self._decode(self._heic_decoder, content, canonical)
        elif canonical in RASTER_TYPES:
            im = self._decode(self._raster_decoder, content, canonical)
        else:
            raise NormalizationError(f"Unsupported media type: {media_type}")

        try:
            surface = _to_rgb_surface(im)
            out = io.BytesIO()
            surface.save(out, format="JPEG", quality=self._quality)
        except (OSError, ValueError) as ex:
            raise NormalizationError(f"Could not re-encode {canonical} as JPEG: {ex}") from ex
        finally:
            im.close()
        data = out.getvalue()
        logger.info(
            "Normalized {} -> image/jpeg ({} -> {} bytes, quality {})",
            canonical,
            len(content),
            len(data),
            self._quality,
        )
        return NormalizedImage(data=data, converted=True)

    def _decode(self, decoder: Decoder, content: bytes, media_type: str) -> Image.Image:
        try:
            return decoder(content)
        except NormalizationError:
            raise
        except Exception as ex:  # pylint: disable=broad-exception-caught
            # Decoders are pluggable; any failure is a normalization failure
            raise NormalizationError(f"Could not decode {media_type} image: {ex}") from ex

    def make_preview(
        self, content: bytes, media_type: str | None, max_side: int = 0
    ) -> bytes | None:
        """Return a bounded JPEG thumbnail for `content`, or None on failure."""
        side = max_side or self._preview_side
        key = _compute_cache_key(content, side)
        cached = self._previews.get(key)
        if cached is not None:
            return cached
        try:
            if _TYPE_ALIASES.get((media_type or "").lower()) == HEIC_TYPE:
                im = self._heic_decoder(content)
            else:
                im = _decode_pillow(content)
            with im:
                surface = _to_rgb_surface(im)
                resampling = getattr(Image, "Resampling", Image)
                surface.thumbnail((side, side), getattr(resampling, "LANCZOS", 1))
                out = io.BytesIO()
                surface.save(out, format="JPEG", quality=85)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.debug("Preview generation failed: {}", ex)
            return None
        data = out.getvalue()
        self._previews.put(key, data)
        return data

    def extract_exif_block(self, content: bytes) -> bytes | None:
        """Return the raw EXIF block Pillow exposes for `content`, if any."""
        try:
            with Image.open(io.BytesIO(content)) as im:
                raw = im.info.get("exif")
                if raw:
                    return bytes(raw)
                exif = im.getexif()
                return exif.tobytes() if exif else None
        except (OSError, ValueError) as ex:
            logger.debug("EXIF block extraction failed: {}", ex)
            return None
