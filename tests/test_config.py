import logging

import pytest

from tinytailor.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    ReplacementRule,
    deep_merge,
    load_config,
    resolve_config_path,
    validate_config,
)
from tinytailor.models import ConfigError


def test_missing_file_yields_defaults(tmp_path):
    config = load_config(tmp_path / CONFIG_FILENAME)
    assert config.project_root == tmp_path.resolve()
    assert config.public_root == (tmp_path / "public").resolve()
    assert config.image_optimization.jpg_quality == 78
    assert config.image_optimization.webp_quality == 80
    assert config.image_optimization.mobile_media == "(max-width: 640px)"
    assert config.text_processing.superscript_replacements.replacements[0] == ReplacementRule(
        "м2", "м<sup>2</sup>"
    )
    assert "в" in config.text_processing.hanging_prepositions.prepositions


def test_user_values_merge_over_defaults(tmp_path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text(
        "public_root: web\n"
        "image_optimization:\n"
        "  webp_quality: 70\n"
        "  raster_exts: ['.png']\n"
        "  png_recompress:\n"
        "    enabled: false\n"
        "text_processing:\n"
        "  superscript_replacements:\n"
        "    replacements:\n"
        "      - {from: 'ft2', to: 'ft<sup>2</sup>'}\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.public_root == (tmp_path / "web").resolve()
    assert config.image_optimization.webp_quality == 70
    assert config.image_optimization.jpg_quality == 78
    assert config.image_optimization.raster_exts == [".png"]
    assert config.image_optimization.png_recompress.enabled is False
    assert config.image_optimization.png_recompress.compression_level == 9
    assert config.text_processing.superscript_replacements.replacements == [
        ReplacementRule("ft2", "ft<sup>2</sup>")
    ]
    assert config.text_processing.hanging_prepositions.enabled is True


def test_unknown_keys_are_ignored_with_warning(tmp_path, caplog):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("surprise: 1\nimage_optimization:\n  colour: red\n", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="tinytailor"):
        config = load_config(path)
    assert config.image_optimization.enabled is True
    assert "surprise" in caplog.text
    assert "image_optimization.colour" in caplog.text


def test_invalid_yaml_raises_config_error(tmp_path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("image_optimization: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_non_mapping_raises_config_error(tmp_path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_validation_reports_each_problem(tmp_path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text(
        "image_optimization:\n  jpg_quality: 0\n  webp_quality: 101\n"
        "css_optimization:\n  file_extensions: []\n"
        "scan_globs: []\n",
        encoding="utf-8",
    )
    errors = validate_config(load_config(path))
    assert any("jpg_quality" in error for error in errors)
    assert any("webp_quality" in error for error in errors)
    assert any("file_extensions" in error for error in errors)
    assert any("scan_globs" in error for error in errors)


def test_defaults_validate_cleanly(tmp_path):
    assert validate_config(load_config(tmp_path / CONFIG_FILENAME)) == []


def test_deep_merge_recurses_into_mappings_only():
    merged = deep_merge({"a": {"b": 1, "c": [1, 2]}, "d": 1}, {"a": {"c": [3]}, "d": None})
    assert merged == {"a": {"b": 1, "c": [3]}, "d": 1}
    assert DEFAULT_CONFIG["image_optimization"]["jpg_quality"] == 78


def test_resolve_config_path_accepts_directories(tmp_path):
    assert resolve_config_path(str(tmp_path)) == (tmp_path / CONFIG_FILENAME).resolve()
    custom = tmp_path / "custom.yaml"
    assert resolve_config_path(str(custom)) == custom.resolve()
    assert resolve_config_path(None, cwd=tmp_path) == (tmp_path / CONFIG_FILENAME).resolve()
