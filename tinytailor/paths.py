"""Image path resolution, HTML path normalization and derivative naming."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Optional

from .models import DerivativeSet
from .utils import is_raster_image, is_remote_reference, split_url_suffix

logger = logging.getLogger("tinytailor")

IGNORED_DIRECTORIES = {"vendor", "node_modules", ".git"}
IGNORED_RELATIVE_DIRECTORIES = {"bootstrap/cache"}


class PathResolver:
    """Resolve image references found in documents to files on disk."""

    def __init__(
        self,
        project_root: Path,
        public_root: Path,
        raster_exts: Optional[Iterable[str]] = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.public_root = Path(public_root).resolve()
        self.raster_exts = [ext.lower() for ext in raster_exts] if raster_exts else None
        self._search_cache: Dict[str, Optional[Path]] = {}

    def resolve_image_path(self, ref: str, doc_path: Path) -> Optional[Path]:
        """Return the absolute path of the file ``ref`` points to, or ``None``."""
        ref = ref.strip()
        if not ref or is_remote_reference(ref):
            return None
        path_part, _ = split_url_suffix(ref)
        if not path_part:
            return None

        if path_part.startswith("/"):
            candidate = self.public_root / path_part.lstrip("/")
            if candidate.is_file():
                return candidate.resolve()
            return self._search_project(path_part)

        for base in (Path(doc_path).parent, self.public_root):
            candidate = base / path_part
            if candidate.is_file():
                return candidate.resolve()
        return self._search_project(path_part)

    def _search_project(self, ref: str) -> Optional[Path]:
        needle = ref
        while needle.startswith(("./", "/")):
            needle = needle[2:] if needle.startswith("./") else needle[1:]
        if not needle:
            return None
        if needle in self._search_cache:
            return self._search_cache[needle]

        found: Optional[Path] = None
        for dirpath, dirnames, filenames in os.walk(self.project_root):
            rel_dir = Path(dirpath).relative_to(self.project_root).as_posix()
            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in IGNORED_DIRECTORIES
                and _join_posix(rel_dir, name) not in IGNORED_RELATIVE_DIRECTORIES
            )
            for filename in sorted(filenames):
                rel = _join_posix(rel_dir, filename)
                if rel != needle and not rel.endswith("/" + needle):
                    continue
                path = Path(dirpath) / filename
                if is_raster_image(path, self.raster_exts):
                    found = path.resolve()
                    break
            if found:
                break

        if found:
            logger.debug("Resolved %s by searching the project: %s", ref, found)
        self._search_cache[needle] = found
        return found

    def normalize_src_for_html(self, image_path: Path, doc_path: Path) -> str:
        """Public-root-relative URL when possible, else a document-relative path."""
        image_path = Path(image_path).resolve()
        try:
            return "/" + image_path.relative_to(self.public_root).as_posix()
        except ValueError:
            pass
        rel = Path(os.path.relpath(image_path, Path(doc_path).resolve().parent)).as_posix()
        if not rel.startswith("."):
            rel = "./" + rel
        return rel

    @staticmethod
    def build_derivatives(image_path: Path) -> DerivativeSet:
        image_path = Path(image_path)
        directory = image_path.parent
        base = image_path.stem
        ext = image_path.suffix
        return DerivativeSet(
            mob1x=directory / f"{base}-mob{ext}",
            mob2x=directory / f"{base}-mob@2x{ext}",
            webp=directory / f"{base}.webp",
            mob1x_webp=directory / f"{base}-mob.webp",
            mob2x_webp=directory / f"{base}-mob@2x.webp",
        )


def _join_posix(directory: str, name: str) -> str:
    return name if directory in ("", ".") else f"{directory}/{name}"
