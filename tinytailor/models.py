"""Data models used throughout the rewriting pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


class TinyTailorError(Exception):
    """Base class for errors raised by the rewriting pipeline."""


class ConfigError(TinyTailorError):
    """Configuration could not be loaded or failed validation."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ImageCodecError(TinyTailorError):
    """An image could not be decoded, resized or re-encoded."""


@dataclass
class Region:
    """A span of document text that may be rewritten as a unit."""

    start: int
    end: int
    inner: str
    open_tag: str
    close_tag: str
    indent: str
    kind: str = "picture"


@dataclass
class Segment:
    """A slice of document text produced by the tag/text splitter."""

    kind: str
    content: str


@dataclass
class ImageMetadata:
    """Pixel dimensions, detected format and byte size of an image file."""

    width: int
    height: int
    format: str
    size: int


@dataclass
class DerivativeSet:
    """Sibling file names generated for one source image."""

    mob1x: Path
    mob2x: Path
    webp: Path
    mob1x_webp: Path
    mob2x_webp: Path


@dataclass
class DerivativeResult:
    """Outcome of one derivative generation call."""

    created: bool
    original_size: int
    new_size: int


@dataclass
class RecompressResult:
    """Outcome of an in-place PNG recompression attempt."""

    compressed: bool
    original_size: int
    new_size: int


@dataclass
class ImageStats:
    """Image counters accumulated per document and per run."""

    processed: int = 0
    webp_converted: int = 0
    downscaled: int = 0
    recompressed: int = 0

    def add(self, other: "ImageStats") -> None:
        self.processed += other.processed
        self.webp_converted += other.webp_converted
        self.downscaled += other.downscaled
        self.recompressed += other.recompressed


@dataclass
class TextStats:
    hanging_prepositions_fixed: int = 0
    superscript_replacements: int = 0

    def add(self, other: "TextStats") -> None:
        self.hanging_prepositions_fixed += other.hanging_prepositions_fixed
        self.superscript_replacements += other.superscript_replacements


@dataclass
class CssStats:
    processed: int = 0
    background_images_processed: int = 0
    webp_rules_added: int = 0

    def add(self, other: "CssStats") -> None:
        self.processed += other.processed
        self.background_images_processed += other.background_images_processed
        self.webp_rules_added += other.webp_rules_added


@dataclass
class StageResult:
    """Content returned by one rewriting stage for one document."""

    content: str
    changed: bool
    images: ImageStats = field(default_factory=ImageStats)
    text: TextStats = field(default_factory=TextStats)
    css: CssStats = field(default_factory=CssStats)


@dataclass
class ProcessingError:
    """A document that could not be processed."""

    file: str
    message: str
    stack: Optional[str] = None


@dataclass
class ProcessingWarning:
    """A non-fatal finding reported to the user."""

    file: str
    message: str
    suggestion: Optional[str] = None


@dataclass
class ProcessingResult:
    """Aggregated outcome of a batch run."""

    changed_files: int = 0
    total_files: int = 0
    images: ImageStats = field(default_factory=ImageStats)
    text: TextStats = field(default_factory=TextStats)
    css: CssStats = field(default_factory=CssStats)
    errors: List[ProcessingError] = field(default_factory=list)
    warnings: List[ProcessingWarning] = field(default_factory=list)
    elapsed_seconds: float = 0.0


@dataclass
class TextFeatures:
    """Text sub-features selected for a run."""

    hanging_prepositions: bool = True
    superscripts: bool = True

    @property
    def any(self) -> bool:
        return self.hanging_prepositions or self.superscripts
