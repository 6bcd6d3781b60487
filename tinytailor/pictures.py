"""Rewrite `<picture>` blocks and standalone `<img>` tags with generated `<source>` elements."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from bs4 import BeautifulSoup

from .config import TinyTailorConfig
from .images import convert_to_webp, downscale, get_metadata, mime_type_for, recompress_png
from .models import (
    DerivativeResult,
    DerivativeSet,
    ImageCodecError,
    ImageStats,
    Region,
    StageResult,
)
from .paths import PathResolver
from .scanner import scan_regions
from .utils import backup_file, detect_newline, format_reference, format_size_change, splice, unwrap_reference

logger = logging.getLogger("tinytailor")

FIRST_MEDIA_TAG = re.compile(r"<(source|img)\b", re.IGNORECASE)
MEDIA_TAG_LINE = re.compile(r"^[ \t]*<(source|img)\b", re.IGNORECASE | re.MULTILINE)
WHITESPACE_RUN = re.compile(r"\s+")
CONTENT_INDENT = "    "


@dataclass
class ExistingSources:
    """Source categories already present in a `<picture>` block."""

    mobile_webp: bool = False
    mobile_original: bool = False
    desktop_webp: bool = False


def _normalize_media(value: str) -> str:
    return WHITESPACE_RUN.sub(" ", value or "").strip().lower()


def inspect_sources(soup: BeautifulSoup, mobile_media: str, original_mime: str) -> ExistingSources:
    existing = ExistingSources()
    wanted_media = _normalize_media(mobile_media)
    for source in soup.find_all("source"):
        source_type = (source.get("type") or "").strip().lower()
        media = _normalize_media(source.get("media") or "")
        if source_type == "image/webp" and media == wanted_media:
            existing.mobile_webp = True
        elif source_type == original_mime and media == wanted_media:
            existing.mobile_original = True
        elif source_type == "image/webp" and not media:
            existing.desktop_webp = True
    return existing


class ImageRewriter:
    """Insert WebP and mobile `<source>` elements for images found in a document."""

    def __init__(self, config: TinyTailorConfig, resolver: Optional[PathResolver] = None) -> None:
        self.config = config
        self.options = config.image_optimization
        self.resolver = resolver or PathResolver(
            config.project_root,
            config.public_root,
            self.options.raster_exts,
        )
        self._raster_exts = {ext.lower() for ext in self.options.raster_exts}
        self._excluded_exts = {ext.lower() for ext in self.options.excluded_extensions}

    def rewrite(self, doc_path: Path, content: str) -> StageResult:
        stats = ImageStats()
        newline = detect_newline(content)
        edits = []
        for region in scan_regions(content, include_loose=self.options.wrap_loose_img):
            try:
                replacement = self.rewrite_region(region, doc_path, stats, newline)
            except (OSError, ImageCodecError) as exc:
                logger.warning("Skipping image block in %s: %s", doc_path, exc)
                continue
            if replacement is None or replacement == content[region.start : region.end]:
                continue
            edits.append((region.start, region.end, replacement))

        if not edits:
            return StageResult(content=content, changed=False, images=stats)
        return StageResult(content=splice(content, edits), changed=True, images=stats)

    def rewrite_region(
        self,
        region: Region,
        doc_path: Path,
        stats: ImageStats,
        newline: str = "\n",
    ) -> Optional[str]:
        """Return replacement markup for ``region`` or ``None`` when nothing changes."""
        if region.kind == "img":
            open_tag, close_tag = "<picture>", "</picture>"
        else:
            open_tag, close_tag = region.open_tag, region.close_tag

        soup = BeautifulSoup(region.inner, "html.parser")
        img = soup.find("img")
        if img is None or not img.get("src"):
            return None
        ref, uses_helper = unwrap_reference(img.get("src"))

        image_path = self.resolver.resolve_image_path(ref, doc_path)
        if image_path is None:
            logger.debug("Image not found for %s in %s", ref, doc_path)
            return None
        ext = image_path.suffix.lower()
        if ext not in self._raster_exts or ext in self._excluded_exts:
            logger.debug("Skipping unsupported image format: %s", image_path)
            return None

        stats.processed += 1
        derivatives = self.resolver.build_derivatives(image_path)
        self._prepare_files(image_path, derivatives, stats)

        original_mime = mime_type_for(image_path)
        existing = inspect_sources(soup, self.options.mobile_media, original_mime)
        sources = self._build_sources(derivatives, existing, original_mime, doc_path, uses_helper)
        if not sources:
            return None

        match = FIRST_MEDIA_TAG.search(region.inner)
        if not match:
            return None
        content_indent = region.indent + CONTENT_INDENT
        head = region.inner[: match.start()].rstrip().lstrip("\r\n")
        lines = [content_indent + source for source in sources]
        lines.append(region.inner[match.start() :])
        body = newline.join(lines)
        new_inner = f"{head}{newline}{body}" if head else body
        new_inner = MEDIA_TAG_LINE.sub(lambda m: f"{content_indent}<{m.group(1)}", new_inner)
        return f"{open_tag}{newline}{new_inner.rstrip()}{newline}{region.indent}{close_tag}"

    def _prepare_files(self, image_path: Path, derivatives: DerivativeSet, stats: ImageStats) -> None:
        options = self.options
        try:
            backup_file(image_path)
        except OSError as exc:
            logger.warning("Could not back up %s: %s", image_path, exc)

        if options.png_recompress.enabled:
            try:
                result = recompress_png(image_path, options.png_recompress)
            except (OSError, ImageCodecError) as exc:
                logger.warning("PNG recompression failed for %s: %s", image_path, exc)
            else:
                if result.compressed:
                    stats.recompressed += 1
                    if options.png_recompress.log:
                        logger.info(
                            "PNG recompressed: %s | %s",
                            image_path,
                            format_size_change(result.original_size, result.new_size),
                        )

        metadata = get_metadata(image_path)
        if metadata.width > options.only_downscale_if_wider_than:
            mobile_2x = options.mobile_width_1x * options.retina_multiplier
            for dest, width in ((derivatives.mob1x, options.mobile_width_1x), (derivatives.mob2x, mobile_2x)):
                result = self._attempt(
                    "Mobile version",
                    dest,
                    lambda dest=dest, width=width: downscale(
                        image_path, dest, width, options.jpg_quality, options.webp_quality
                    ),
                )
                if result and result.created:
                    stats.downscaled += 1
            for src, dest in (
                (derivatives.mob1x, derivatives.mob1x_webp),
                (derivatives.mob2x, derivatives.mob2x_webp),
            ):
                if not src.exists():
                    continue
                result = self._attempt(
                    "WebP conversion",
                    dest,
                    lambda src=src, dest=dest: convert_to_webp(src, dest, options.webp_quality),
                )
                if result and result.created:
                    stats.webp_converted += 1

        result = self._attempt(
            "WebP conversion",
            derivatives.webp,
            lambda: convert_to_webp(image_path, derivatives.webp, options.webp_quality),
        )
        if result and result.created:
            stats.webp_converted += 1

    @staticmethod
    def _attempt(
        action: str,
        dest: Path,
        operation: Callable[[], DerivativeResult],
    ) -> Optional[DerivativeResult]:
        try:
            result = operation()
        except (OSError, ImageCodecError) as exc:
            logger.warning("%s failed for %s: %s", action, dest, exc)
            return None
        if result.created:
            logger.info("%s: %s | %s", action, dest, format_size_change(result.original_size, result.new_size))
        return result

    def _build_sources(
        self,
        derivatives: DerivativeSet,
        existing: ExistingSources,
        original_mime: str,
        doc_path: Path,
        uses_helper: bool,
    ) -> List[str]:
        marker = self.options.marker_attr
        media = self.options.mobile_media

        def reference(path: Path) -> str:
            return format_reference(self.resolver.normalize_src_for_html(path, doc_path), uses_helper)

        sources: List[str] = []
        if (
            not existing.mobile_webp
            and derivatives.mob1x_webp.exists()
            and derivatives.mob2x_webp.exists()
        ):
            sources.append(
                f'<source {marker}="true" media="{media}" type="image/webp" '
                f'srcset="{reference(derivatives.mob1x_webp)} 1x, {reference(derivatives.mob2x_webp)} 2x">'
            )
        if (
            original_mime != "image/webp"
            and not existing.mobile_original
            and derivatives.mob1x.exists()
            and derivatives.mob2x.exists()
        ):
            sources.append(
                f'<source {marker}="true" media="{media}" type="{original_mime}" '
                f'srcset="{reference(derivatives.mob1x)} 1x, {reference(derivatives.mob2x)} 2x">'
            )
        if (
            original_mime != "image/webp"
            and not existing.desktop_webp
            and derivatives.webp.exists()
        ):
            sources.append(
                f'<source {marker}="true" type="image/webp" srcset="{reference(derivatives.webp)}">'
            )
        return sources
