"""Utility helpers for reference wrapping, file IO and discovery."""

from __future__ import annotations

import fnmatch
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger("tinytailor")

ASSET_HELPER_PATTERN = re.compile(r"asset\(\s*['\"`]([^'\"`]+)['\"`]\s*\)")
LEADING_DELIMITERS = re.compile(r"^[\s\"'{(]+")
TRAILING_DELIMITERS = re.compile(r"[\s)\"'}]+$")

RASTER_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff"}


def unwrap_reference(raw: str) -> Tuple[str, bool]:
    """Return the bare path inside an image reference and whether a helper wrapped it."""
    match = ASSET_HELPER_PATTERN.search(raw)
    if match:
        return match.group(1).strip(), True
    stripped = LEADING_DELIMITERS.sub("", raw)
    stripped = TRAILING_DELIMITERS.sub("", stripped)
    return stripped, False


def wrap_reference(path: str) -> str:
    """Wrap a path in the template asset helper."""
    if path.startswith("./"):
        path = path[2:]
    elif path.startswith("/"):
        path = path[1:]
    return "{{ asset('" + path + "') }}"


def format_reference(path: str, uses_helper: bool) -> str:
    return wrap_reference(path) if uses_helper else path


def split_url_suffix(ref: str) -> Tuple[str, str]:
    """Split ``ref`` into the path and its query/fragment suffix."""
    cut = len(ref)
    for marker in ("?", "#"):
        index = ref.find(marker)
        if index != -1:
            cut = min(cut, index)
    return ref[:cut], ref[cut:]


def is_remote_reference(ref: str) -> bool:
    lowered = ref.strip().lower()
    return lowered.startswith(("http:", "https:", "//", "data:"))


def is_raster_image(path: Path, extensions: Optional[Iterable[str]] = None) -> bool:
    allowed = {ext.lower() for ext in (extensions or RASTER_EXTENSIONS)}
    return path.suffix.lower() in allowed


def read_document(path: Path) -> str:
    """Read a text document without translating its line endings."""
    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text_atomic(path: Path, content: str) -> None:
    """Write text via a temporary sibling so readers never see a partial file."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_bytes_atomic(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def backup_path_for(path: Path) -> Path:
    return path.with_name(f"{path.stem}_orig{path.suffix}")


def backup_file(path: Path) -> Optional[Path]:
    """Copy ``path`` to ``{base}_orig{ext}`` unless a backup already exists.

    Returns the backup path when one was created.
    """
    backup = backup_path_for(path)
    if backup.exists():
        return None
    shutil.copy2(path, backup)
    logger.debug("Backed up %s to %s", path, backup.name)
    return backup


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


def format_size_change(original: int, new: int) -> str:
    """Render ``12.0KB -> 4.1KB (65.8%)``."""
    saved = (original - new) / original * 100 if original else 0.0
    return f"{format_bytes(original)} -> {format_bytes(new)} ({saved:.1f}%)"


def _relative_posix(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def scan_files(
    globs: Sequence[str],
    root: Path,
    exclude_paths: Sequence[str] = (),
    exclude_files: Sequence[str] = (),
) -> List[Path]:
    """Expand glob patterns under ``root``; ``!``-prefixed patterns exclude."""
    includes = [pattern for pattern in globs if pattern and not pattern.startswith("!")]
    excludes = [pattern[1:] for pattern in globs if pattern.startswith("!")]
    prefixes = [prefix.strip("/") for prefix in exclude_paths if prefix.strip("/")]
    names = set(exclude_files)

    found = set()
    for pattern in includes:
        for candidate in root.glob(pattern):
            if not candidate.is_file():
                continue
            rel = _relative_posix(candidate, root)
            if any(fnmatch.fnmatch(rel, exclude) for exclude in excludes):
                continue
            if any(rel == prefix or rel.startswith(prefix + "/") for prefix in prefixes):
                continue
            if candidate.name in names:
                continue
            found.add(candidate)
    return sorted(found)


def splice(text: str, edits: Sequence[Tuple[int, int, str]]) -> str:
    """Apply ``(start, end, replacement)`` edits, given in ascending order."""
    delta = 0
    for start, end, replacement in edits:
        text = text[: start + delta] + replacement + text[end + delta :]
        delta += len(replacement) - (end - start)
    return text


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"
