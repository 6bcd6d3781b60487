"""Image metadata, derivative generation and PNG recompression backed by Pillow."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

from filetype import guess
from PIL import Image, ImageOps

from .config import PngRecompressOptions
from .models import DerivativeResult, ImageCodecError, ImageMetadata, RecompressResult
from .utils import write_bytes_atomic

logger = logging.getLogger("tinytailor")

HEADER_BYTES = 262
RECOMPRESS_SLACK_BYTES = 1024

SUFFIX_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".webp": "WEBP",
    ".gif": "GIF",
    ".bmp": "BMP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}

SUFFIX_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def mime_type_for(path: Path) -> str:
    return SUFFIX_MIME_TYPES.get(path.suffix.lower(), "image/" + path.suffix.lower().lstrip("."))


def _read_header(path: Path) -> bytes:
    with path.open("rb") as handle:
        return handle.read(HEADER_BYTES)


def get_metadata(path: Path) -> ImageMetadata:
    """Return dimensions, detected format and size; zeros when unreadable."""
    try:
        size = path.stat().st_size
        with Image.open(path) as image:
            width, height = image.size
            pillow_format = (image.format or "").lower()
        detected = detect_image_format(_read_header(path)) or pillow_format
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.debug("Could not read image metadata for %s: %s", path, exc)
        return ImageMetadata(width=0, height=0, format="", size=0)
    return ImageMetadata(width=width, height=height, format=detected, size=size)


def _has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def _encode(image: Image.Image, dest: Path, jpg_quality: int, webp_quality: int) -> bytes:
    fmt = SUFFIX_FORMATS.get(dest.suffix.lower())
    if fmt is None:
        raise ImageCodecError(f"Unsupported output format for {dest.name}")
    buffer = io.BytesIO()
    if fmt == "JPEG":
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buffer, "JPEG", quality=jpg_quality, optimize=True, progressive=True)
    elif fmt == "PNG":
        image.save(buffer, "PNG", optimize=True, compress_level=9)
    elif fmt == "WEBP":
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if _has_alpha(image) else "RGB")
        image.save(buffer, "WEBP", quality=webp_quality, method=6)
    else:
        image.save(buffer, fmt)
    return buffer.getvalue()


def _cached(dest: Path) -> Optional[DerivativeResult]:
    if dest.exists():
        return DerivativeResult(created=False, original_size=0, new_size=dest.stat().st_size)
    return None


def downscale(
    src: Path,
    dest: Path,
    width: int,
    jpg_quality: int = 78,
    webp_quality: int = 80,
) -> DerivativeResult:
    """Write a copy of ``src`` no wider than ``width`` pixels to ``dest``.

    Existing destinations are left alone. Images that are already narrow
    enough are copied verbatim when the formats match.
    """
    cached = _cached(dest)
    if cached:
        return cached
    original_size = src.stat().st_size
    same_format = SUFFIX_FORMATS.get(src.suffix.lower()) == SUFFIX_FORMATS.get(dest.suffix.lower())
    try:
        with Image.open(src) as raw:
            image = ImageOps.exif_transpose(raw)
            if image.width <= width and same_format:
                data = src.read_bytes()
            else:
                if image.width > width:
                    height = max(1, round(image.height * width / image.width))
                    image = image.resize((width, height), Image.Resampling.LANCZOS)
                data = _encode(image, dest, jpg_quality, webp_quality)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageCodecError(f"Could not downscale {src}: {exc}") from exc
    write_bytes_atomic(dest, data)
    return DerivativeResult(created=True, original_size=original_size, new_size=len(data))


def convert_to_webp(src: Path, dest: Path, quality: int = 80) -> DerivativeResult:
    cached = _cached(dest)
    if cached:
        return cached
    original_size = src.stat().st_size
    try:
        with Image.open(src) as raw:
            image = ImageOps.exif_transpose(raw)
            data = _encode(image, dest, jpg_quality=quality, webp_quality=quality)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageCodecError(f"Could not convert {src} to WebP: {exc}") from exc
    write_bytes_atomic(dest, data)
    return DerivativeResult(created=True, original_size=original_size, new_size=len(data))


def recompress_png(path: Path, options: PngRecompressOptions) -> RecompressResult:
    """Losslessly re-encode a large PNG in place when that saves real space."""
    size = path.stat().st_size
    if detect_image_format(_read_header(path)) != "png":
        return RecompressResult(compressed=False, original_size=size, new_size=size)
    try:
        with Image.open(path) as image:
            pixels = image.width * image.height
            if size < options.size_threshold_bytes and pixels < options.min_pixels_threshold:
                return RecompressResult(compressed=False, original_size=size, new_size=size)
            image.load()
            buffer = io.BytesIO()
            image.save(
                buffer,
                "PNG",
                optimize=options.adaptive_filtering or options.effort >= 7,
                compress_level=options.compression_level,
            )
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageCodecError(f"Could not recompress {path}: {exc}") from exc

    data = buffer.getvalue()
    if len(data) + RECOMPRESS_SLACK_BYTES >= size:
        return RecompressResult(compressed=False, original_size=size, new_size=size)
    write_bytes_atomic(path, data)
    return RecompressResult(compressed=True, original_size=size, new_size=len(data))
