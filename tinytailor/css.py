"""Wrap CSS `background-image` rules in WebP `@supports` blocks."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .config import TinyTailorConfig
from .images import convert_to_webp
from .models import CssStats, ImageCodecError, StageResult
from .utils import format_size_change, split_url_suffix, splice

logger = logging.getLogger("tinytailor")

WEBP_TEST_URI = "data:image/webp;base64,UklGRhoAAABXRUJQVlA4TA0AAAAvAAAAEAcQERGIiP4HAA=="
CSS_RASTER_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff"}

BACKGROUND_IMAGE = re.compile(
    r"background-image\s*:\s*url\(\s*(?P<ref>\"[^\"]*\"|'[^']*'|[^)'\"\s]*)\s*\)",
    re.IGNORECASE,
)

SUPPORTS_TEMPLATE = (
    "@supports (background-image: url('{uri}')) {{\n"
    "  {webp}\n"
    "}}\n"
    "\n"
    "/* Fallback for browsers that don't support WebP */\n"
    "@supports not (background-image: url('{uri}')) {{\n"
    "  {original}\n"
    "}}"
)


def build_supports_block(webp_rule: str, original_rule: str) -> str:
    return SUPPORTS_TEMPLATE.format(uri=WEBP_TEST_URI, webp=webp_rule, original=original_rule)


def should_skip_url(url: str) -> bool:
    lowered = url.strip().lower()
    return (
        not lowered
        or lowered.startswith(("data:", "http://", "https://", "//", "#"))
        or lowered.endswith(".webp")
        or "gradient" in lowered
    )


def _enclosing_braces(content: str, index: int) -> Iterator[int]:
    """Yield positions of the unmatched `{` enclosing ``index``, innermost first."""
    depth = 0
    for position in range(index - 1, -1, -1):
        char = content[position]
        if char == "}":
            depth += 1
        elif char == "{":
            if depth == 0:
                yield position
            else:
                depth -= 1


def _block_header(content: str, brace: int, stops: str = "{};") -> Tuple[int, str]:
    start = brace
    while start > 0:
        if start >= 2 and content.startswith("*/", start - 2):
            opening = content.rfind("/*", 0, start - 2)
            if opening != -1:
                start = opening
                continue
        if content[start - 1] in stops:
            break
        start -= 1
    # Skip whitespace and comments that precede the selector.
    while True:
        while start < brace and content[start].isspace():
            start += 1
        if content.startswith("/*", start):
            end_comment = content.find("*/", start + 2)
            if end_comment == -1 or end_comment >= brace:
                break
            start = end_comment + 2
            continue
        break
    return start, content[start:brace].strip()


def _matching_brace(content: str, brace: int) -> Optional[int]:
    depth = 0
    for position in range(brace + 1, len(content)):
        char = content[position]
        if char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                return position
            depth -= 1
    return None


def find_rule_span(content: str, index: int) -> Optional[Tuple[int, int]]:
    """Return the ``[start, end)`` span of the style rule containing ``index``.

    At-rule blocks (``@media``, ``@supports``) are not style rules; ``None``
    is returned when the innermost block is one of those or nothing encloses
    the position.
    """
    brace = next(_enclosing_braces(content, index), None)
    if brace is None:
        return None
    start, selector = _block_header(content, brace)
    if not selector or selector.startswith("@"):
        return None
    closing = _matching_brace(content, brace)
    if closing is None:
        return None
    return start, closing + 1


def inside_webp_supports(content: str, index: int) -> bool:
    for brace in _enclosing_braces(content, index):
        # The test URI contains ";" so only braces delimit the header here.
        _, header = _block_header(content, brace, stops="{}")
        if "@supports" in header and WEBP_TEST_URI in header:
            return True
    return False


class CssRewriter:
    """Add WebP-aware `@supports` blocks for raster background images."""

    def __init__(self, config: TinyTailorConfig) -> None:
        self.config = config
        self.options = config.css_optimization
        self.public_root = config.public_root
        self.webp_quality = config.image_optimization.webp_quality

    def rewrite(self, css_path: Path, content: str) -> StageResult:
        stats = CssStats()
        if not self.options.webp_enabled:
            return StageResult(content=content, changed=False, css=stats)

        groups: Dict[Tuple[int, int], List[Tuple[int, int, str]]] = {}
        loose: List[Tuple[int, int, str]] = []
        for match in BACKGROUND_IMAGE.finditer(content):
            raw = match.group("ref")
            quote = raw[0] if raw[:1] in ("'", '"') else ""
            ref = raw[1:-1].strip() if quote else raw
            if should_skip_url(ref):
                continue
            if inside_webp_supports(content, match.start()):
                continue
            try:
                webp_ref = self._prepare_webp(ref, css_path)
            except (OSError, ImageCodecError) as exc:
                logger.warning("Failed to process background image %s in %s: %s", ref, css_path, exc)
                continue
            if webp_ref is None:
                continue

            declaration = (match.start(), match.end(), match.start("ref"), match.end("ref"), quote + webp_ref + quote)
            span = find_rule_span(content, match.start())
            if span is None:
                loose.append(self._declaration_edit(content, declaration))
                stats.background_images_processed += 1
                stats.webp_rules_added += 1
            else:
                groups.setdefault(span, []).append(declaration[2:])

        edits = list(loose)
        accepted: List[Tuple[int, int]] = []
        for (start, end), replacements in sorted(groups.items()):
            if any(start < other_end and other_start < end for other_start, other_end in accepted):
                logger.debug("Skipping nested rule at offset %d in %s", start, css_path)
                continue
            if any(start < edit_end and edit_start < end for edit_start, edit_end, _ in loose):
                continue
            original_rule = content[start:end]
            webp_rule = splice(
                original_rule,
                [(ref_start - start, ref_end - start, new_ref) for ref_start, ref_end, new_ref in replacements],
            )
            edits.append((start, end, build_supports_block(webp_rule, original_rule)))
            accepted.append((start, end))
            stats.background_images_processed += len(replacements)
            stats.webp_rules_added += 1

        if not edits:
            return StageResult(content=content, changed=False, css=stats)
        edits.sort(key=lambda edit: edit[0])
        stats.processed = 1
        logger.info("CSS WebP rules: %s | %d changes", css_path, stats.webp_rules_added)
        return StageResult(content=splice(content, edits), changed=True, css=stats)

    @staticmethod
    def _declaration_edit(content: str, declaration: Tuple[int, int, int, int, str]) -> Tuple[int, int, str]:
        start, end, ref_start, ref_end, new_ref = declaration
        original = content[start:end]
        webp = original[: ref_start - start] + new_ref + original[ref_end - start :]
        return start, end, build_supports_block(webp, original)

    def _prepare_webp(self, ref: str, css_path: Path) -> Optional[str]:
        """Make sure the `.webp` sibling exists and return the reference to it."""
        path_part, suffix = split_url_suffix(ref)
        stem, ext = os.path.splitext(path_part)
        if ext.lower() not in CSS_RASTER_EXTENSIONS:
            return None
        if path_part.startswith("/"):
            image_path = self.public_root / path_part.lstrip("/")
        else:
            image_path = css_path.parent / path_part
        image_path = Path(os.path.normpath(image_path))
        if not image_path.is_file():
            logger.debug("Background image not found: %s (from %s)", ref, css_path)
            return None

        webp_path = image_path.with_suffix(".webp")
        result = convert_to_webp(image_path, webp_path, self.webp_quality)
        if result.created:
            logger.info(
                "WebP conversion: %s | %s",
                webp_path,
                format_size_change(result.original_size, result.new_size),
            )
        return f"{stem}.webp{suffix}"
