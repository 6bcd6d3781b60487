"""Experimental check for images that are much larger than their display width."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from bs4 import BeautifulSoup

from .config import TinyTailorConfig
from .images import get_metadata
from .models import ProcessingWarning
from .paths import PathResolver
from .scanner import IMG_TAG
from .utils import is_raster_image, read_document, unwrap_reference

logger = logging.getLogger("tinytailor")

NUMERIC_WIDTH = re.compile(r"^\s*(\d+)(?:px)?\s*$", re.IGNORECASE)


class SizeChecker:
    def __init__(self, config: TinyTailorConfig, resolver: Optional[PathResolver] = None) -> None:
        self.config = config
        self.threshold = config.size_checking.threshold
        self.retina = config.image_optimization.retina_multiplier
        self.resolver = resolver or PathResolver(
            config.project_root,
            config.public_root,
            config.image_optimization.raster_exts,
        )

    def check_files(self, files: List[Path]) -> List[ProcessingWarning]:
        logger.warning("Size checking is experimental and may produce false positives.")
        warnings: List[ProcessingWarning] = []
        for path in files:
            warnings.extend(self.check_document(path))
        return warnings

    def check_document(self, doc_path: Path, content: Optional[str] = None) -> List[ProcessingWarning]:
        if content is None:
            try:
                content = read_document(doc_path)
            except (OSError, UnicodeDecodeError) as exc:
                return [
                    ProcessingWarning(
                        file=str(doc_path),
                        message=f"Could not analyze file for size checking: {exc}",
                        suggestion="Check file permissions and encoding",
                    )
                ]

        warnings: List[ProcessingWarning] = []
        for match in IMG_TAG.finditer(content):
            warning = self._check_tag(doc_path, match.group(0))
            if warning:
                warnings.append(warning)
        return warnings

    def _check_tag(self, doc_path: Path, tag: str) -> Optional[ProcessingWarning]:
        img = BeautifulSoup(tag, "html.parser").find("img")
        if img is None or not img.get("src"):
            return None
        width_match = NUMERIC_WIDTH.match(img.get("width") or "")
        if not width_match:
            return None
        display_width = int(width_match.group(1))
        if display_width <= 0:
            return None

        ref, _ = unwrap_reference(img.get("src"))
        image_path = self.resolver.resolve_image_path(ref, doc_path)
        if image_path is None or not is_raster_image(image_path, self.resolver.raster_exts):
            return None
        metadata = get_metadata(image_path)
        if not metadata.width:
            return None

        limit = display_width * self.retina * (1 + self.threshold / 100)
        if metadata.width <= limit:
            return None
        logger.debug("Oversized image %s in %s", image_path, doc_path)
        return ProcessingWarning(
            file=str(doc_path),
            message=(
                f"Image {ref} is {metadata.width}px wide but displayed at {display_width}px"
            ),
            suggestion=f"Resize to about {display_width * self.retina}px wide",
        )
