"""Configuration objects, defaults and loading for the rewriting pipeline."""

from __future__ import annotations

import copy
import logging
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .models import ConfigError

logger = logging.getLogger("tinytailor")

CONFIG_FILENAME = "tinytailor.config.yaml"

DEFAULT_PREPOSITIONS = [
    # Russian prepositions
    "в", "во", "на", "за", "под", "над", "от", "до", "из", "к", "ко", "с", "со",
    "у", "о", "об", "при", "через", "между", "среди", "без", "для", "после",
    "перед", "про", "по", "вокруг", "около", "возле", "против", "вместо",
    "кроме", "сквозь", "вдоль", "поперек", "помимо", "согласно", "благодаря",
    "вопреки", "навстречу", "ради", "мимо",
    # Russian conjunctions and particles
    "и", "а", "но", "да", "или", "либо", "ни", "что", "как", "когда", "где",
    "если", "хотя", "чтобы", "не", "же", "ли", "бы", "ведь", "вот", "уж",
    "еще", "уже", "только", "лишь", "даже",
    # Short Russian pronouns
    "я", "он", "мы", "вы", "их", "им", "те", "то", "та", "ту", "ты", "мне",
    "нам", "вам", "его", "ее", "это", "эта", "тот",
    # English
    "a", "an", "the", "in", "on", "at", "by", "for", "of", "to", "from",
    "with", "into", "onto", "upon", "via", "and", "or", "but", "nor", "so",
    "as", "if", "is", "are", "was", "I", "my", "our", "your", "his", "her",
    "its", "their", "no", "not",
]

DEFAULT_REPLACEMENTS = [
    {"from": "м2", "to": "м<sup>2</sup>"},
    {"from": "м3", "to": "м<sup>3</sup>"},
    {"from": "км2", "to": "км<sup>2</sup>"},
    {"from": "км3", "to": "км<sup>3</sup>"},
    {"from": "см2", "to": "см<sup>2</sup>"},
    {"from": "см3", "to": "см<sup>3</sup>"},
    {"from": "мм2", "to": "мм<sup>2</sup>"},
    {"from": "мм3", "to": "мм<sup>3</sup>"},
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "public_root": "public",
    "scan_globs": [
        "**/*.blade.php",
        "**/*.html",
        "**/*.vue",
        "!vendor/**",
        "!node_modules/**",
        "!storage/**",
        "!bootstrap/cache/**",
        "!resources/views/vendor/**",
        "!resources/views/emails/**",
    ],
    "exclude_paths": [],
    "exclude_files": [],
    "image_optimization": {
        "enabled": True,
        "excluded_extensions": [".webp"],
        "wrap_loose_img": False,
        "mobile_width_1x": 640,
        "retina_multiplier": 2,
        "only_downscale_if_wider_than": 800,
        "mobile_media": "(max-width: 640px)",
        "jpg_quality": 78,
        "webp_quality": 80,
        "raster_exts": [".jpg", ".jpeg", ".png", ".webp"],
        "marker_attr": "data-optimized",
        "png_recompress": {
            "enabled": True,
            "size_threshold_bytes": 8 * 1024 * 1024,
            "min_pixels_threshold": 12_000_000,
            "compression_level": 9,
            "effort": 9,
            "adaptive_filtering": True,
            "log": True,
        },
    },
    "text_processing": {
        "hanging_prepositions": {
            "enabled": True,
            "file_extensions": [".html", ".blade.php", ".vue"],
            "prepositions": DEFAULT_PREPOSITIONS,
        },
        "superscript_replacements": {
            "enabled": True,
            "replacements": DEFAULT_REPLACEMENTS,
        },
    },
    "size_checking": {
        "enabled": False,
        "threshold": 50,
    },
    "css_optimization": {
        "enabled": True,
        "webp_enabled": True,
        "file_extensions": [".css", ".scss", ".sass"],
    },
    "logging": {
        "console": True,
        "markdown_report": True,
        "report_dir": "tinytailor_reports",
    },
}


@dataclass
class PngRecompressOptions:
    enabled: bool = True
    size_threshold_bytes: int = 8 * 1024 * 1024
    min_pixels_threshold: int = 12_000_000
    compression_level: int = 9
    effort: int = 9
    adaptive_filtering: bool = True
    log: bool = True


@dataclass
class ImageOptions:
    """Settings for `<picture>` rewriting and derivative generation."""

    enabled: bool = True
    excluded_extensions: List[str] = field(default_factory=lambda: [".webp"])
    wrap_loose_img: bool = False
    mobile_width_1x: int = 640
    retina_multiplier: int = 2
    only_downscale_if_wider_than: int = 800
    mobile_media: str = "(max-width: 640px)"
    jpg_quality: int = 78
    webp_quality: int = 80
    raster_exts: List[str] = field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".webp"]
    )
    marker_attr: str = "data-optimized"
    png_recompress: PngRecompressOptions = field(default_factory=PngRecompressOptions)


@dataclass
class ReplacementRule:
    """A literal token and the markup that replaces it."""

    match: str
    replacement: str


@dataclass
class HangingPrepositionOptions:
    enabled: bool = True
    file_extensions: List[str] = field(
        default_factory=lambda: [".html", ".blade.php", ".vue"]
    )
    prepositions: List[str] = field(default_factory=lambda: list(DEFAULT_PREPOSITIONS))


@dataclass
class SuperscriptOptions:
    enabled: bool = True
    replacements: List[ReplacementRule] = field(
        default_factory=lambda: [
            ReplacementRule(item["from"], item["to"]) for item in DEFAULT_REPLACEMENTS
        ]
    )

    def __post_init__(self) -> None:
        rules: List[ReplacementRule] = []
        for item in self.replacements:
            if isinstance(item, ReplacementRule):
                rules.append(item)
            elif isinstance(item, Mapping) and "from" in item and "to" in item:
                rules.append(ReplacementRule(str(item["from"]), str(item["to"])))
            else:
                raise ConfigError([f"Invalid superscript replacement entry: {item!r}"])
        self.replacements = rules


@dataclass
class TextOptions:
    hanging_prepositions: HangingPrepositionOptions = field(
        default_factory=HangingPrepositionOptions
    )
    superscript_replacements: SuperscriptOptions = field(
        default_factory=SuperscriptOptions
    )


@dataclass
class SizeCheckOptions:
    enabled: bool = False
    threshold: int = 50


@dataclass
class CssOptions:
    enabled: bool = True
    webp_enabled: bool = True
    file_extensions: List[str] = field(default_factory=lambda: [".css", ".scss", ".sass"])


@dataclass
class LoggingOptions:
    console: bool = True
    markdown_report: bool = True
    report_dir: str = "tinytailor_reports"


@dataclass
class TinyTailorConfig:
    """Top-level settings that control scanning and rewriting behaviour."""

    project_root: Path
    public_root: Path
    scan_globs: List[str] = field(
        default_factory=lambda: list(DEFAULT_CONFIG["scan_globs"])
    )
    exclude_paths: List[str] = field(default_factory=list)
    exclude_files: List[str] = field(default_factory=list)
    image_optimization: ImageOptions = field(default_factory=ImageOptions)
    text_processing: TextOptions = field(default_factory=TextOptions)
    size_checking: SizeCheckOptions = field(default_factory=SizeCheckOptions)
    css_optimization: CssOptions = field(default_factory=CssOptions)
    logging: LoggingOptions = field(default_factory=LoggingOptions)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], project_root: Path) -> "TinyTailorConfig":
        project_root = Path(project_root).resolve()
        public_root = Path(data.get("public_root") or "public")
        if not public_root.is_absolute():
            public_root = project_root / public_root
        values = {
            key: value
            for key, value in data.items()
            if key not in ("project_root", "public_root")
        }
        return _from_mapping(
            cls,
            values,
            project_root=project_root,
            public_root=public_root.resolve(),
        )


def _from_mapping(cls, data: Mapping[str, Any], prefix: str = "", **extra: Any):
    known = {f.name: f for f in fields(cls)}
    kwargs: Dict[str, Any] = dict(extra)
    for key, value in data.items():
        f = known.get(key)
        if f is None:
            logger.warning("Ignoring unknown config key %s%s", prefix, key)
            continue
        if f.default_factory is not MISSING:  # type: ignore[misc]
            template = f.default_factory()  # type: ignore[misc]
            if is_dataclass(template):
                if not isinstance(value, Mapping):
                    raise ConfigError([f"{prefix}{key} must be a mapping"])
                value = _from_mapping(type(template), value, prefix=f"{prefix}{key}.")
        kwargs[key] = value
    return cls(**kwargs)


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into ``base``: mappings recurse, everything else replaces."""
    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(current, value)
        elif value is not None:
            merged[key] = copy.deepcopy(value)
    return merged


def resolve_config_path(config_arg: Optional[str], cwd: Optional[Path] = None) -> Path:
    """Return the config file path for a ``--config`` argument (file or directory)."""
    base = Path(cwd or Path.cwd())
    if not config_arg:
        return (base / CONFIG_FILENAME).resolve()
    candidate = Path(config_arg).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    if candidate.is_dir():
        candidate = candidate / CONFIG_FILENAME
    return candidate.resolve()


def load_config(config_path: Path) -> TinyTailorConfig:
    """Load a YAML config file and merge it over the defaults.

    A missing file yields the defaults rooted at the file's directory.
    """
    project_root = config_path.parent
    user_config: Dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError([f"Could not parse {config_path}: {exc}"]) from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, Mapping):
            raise ConfigError([f"{config_path} must contain a mapping at the top level"])
        user_config = dict(loaded)
        logger.debug("Loaded configuration from %s", config_path)
    else:
        logger.info("No config file at %s; using defaults", config_path)

    merged = deep_merge(DEFAULT_CONFIG, user_config)
    try:
        return TinyTailorConfig.from_dict(merged, project_root)
    except TypeError as exc:
        raise ConfigError([f"Invalid configuration: {exc}"]) from exc


def validate_config(config: TinyTailorConfig) -> List[str]:
    """Return a list of validation errors; empty means the config is usable."""
    errors: List[str] = []
    if not config.project_root.is_dir():
        errors.append(f"Project root does not exist: {config.project_root}")
    if not config.public_root.exists():
        logger.warning("Public root does not exist: %s", config.public_root)

    images = config.image_optimization
    for name in ("jpg_quality", "webp_quality"):
        value = getattr(images, name)
        if not isinstance(value, int) or not 1 <= value <= 100:
            errors.append(f"image_optimization.{name} must be between 1 and 100 (got {value!r})")
    if images.mobile_width_1x <= 0:
        errors.append("image_optimization.mobile_width_1x must be positive")
    if images.retina_multiplier < 1:
        errors.append("image_optimization.retina_multiplier must be at least 1")
    if not images.raster_exts:
        errors.append("image_optimization.raster_exts cannot be empty")
    if not 0 <= images.png_recompress.compression_level <= 9:
        errors.append("image_optimization.png_recompress.compression_level must be between 0 and 9")

    if not config.scan_globs:
        errors.append("scan_globs cannot be empty")
    if not config.css_optimization.file_extensions:
        errors.append("css_optimization.file_extensions cannot be empty")
    if config.size_checking.threshold < 0:
        errors.append("size_checking.threshold must not be negative")
    return errors


def default_config_document() -> Dict[str, Any]:
    """Defaults in the on-disk YAML form, used by ``tinytailor init``."""
    return copy.deepcopy(DEFAULT_CONFIG)
