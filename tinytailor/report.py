"""Collect log records during a run and render the Markdown processing report."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import List, Optional

from .models import ProcessingResult

logger = logging.getLogger("tinytailor")

REPORT_PREFIX = "tailorreport_"


class ReportCollector(logging.Handler):
    """Logging handler that keeps formatted INFO+ records for the report."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.lines: List[str] = []
        self.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)


def compose_report(
    result: ProcessingResult,
    log_lines: Optional[List[str]] = None,
    project_root: Optional[Path] = None,
    modules: Optional[List[str]] = None,
) -> str:
    """Generate the Markdown report body for a finished run."""
    timestamp = dt.datetime.now().replace(microsecond=0).isoformat(sep=" ")
    lines = ["# TinyTailor Processing Report", ""]
    lines.append(f"- Generated: {timestamp}")
    if project_root is not None:
        lines.append(f"- Project root: `{project_root}`")
    if modules:
        lines.append(f"- Modules: {', '.join(modules)}")
    lines.append(f"- Duration: {result.elapsed_seconds:.2f}s")
    lines.append("")

    lines.extend(
        [
            "## Summary",
            "",
            "| Metric | Value |",
            "| --- | --- |",
            f"| Files changed | {result.changed_files}/{result.total_files} |",
            f"| Images processed | {result.images.processed} |",
            f"| WebP files created | {result.images.webp_converted} |",
            f"| Mobile versions created | {result.images.downscaled} |",
            f"| PNGs recompressed | {result.images.recompressed} |",
            f"| Hanging prepositions fixed | {result.text.hanging_prepositions_fixed} |",
            f"| Superscript replacements | {result.text.superscript_replacements} |",
            f"| CSS files changed | {result.css.processed} |",
            f"| CSS background images | {result.css.background_images_processed} |",
            f"| CSS WebP rules added | {result.css.webp_rules_added} |",
            f"| Errors | {len(result.errors)} |",
            f"| Warnings | {len(result.warnings)} |",
            "",
        ]
    )

    if result.errors:
        lines.extend(["## Errors", ""])
        for error in result.errors:
            lines.append(f"- **{error.file}**: {error.message}")
            if error.stack:
                lines.extend(
                    [
                        "",
                        "  <details><summary>Stack trace</summary>",
                        "",
                        "  ```",
                        *("  " + row for row in error.stack.rstrip().splitlines()),
                        "  ```",
                        "",
                        "  </details>",
                    ]
                )
        lines.append("")

    if result.warnings:
        lines.extend(["## Warnings", ""])
        for warning in result.warnings:
            entry = f"- **{warning.file}**: {warning.message}"
            if warning.suggestion:
                entry += f" _(suggestion: {warning.suggestion})_"
            lines.append(entry)
        lines.append("")

    if log_lines:
        lines.extend(["## Processing Log", "", "```", *log_lines, "```", ""])

    return "\n".join(lines).rstrip() + "\n"


def write_report(
    result: ProcessingResult,
    report_dir: Path,
    log_lines: Optional[List[str]] = None,
    project_root: Optional[Path] = None,
    modules: Optional[List[str]] = None,
) -> Path:
    report_dir.mkdir(parents=True, exist_ok=True)
    stamp = dt.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    path = report_dir / f"{REPORT_PREFIX}{stamp}.md"
    path.write_text(
        compose_report(result, log_lines, project_root=project_root, modules=modules),
        encoding="utf-8",
    )
    logger.info("Report written to %s", path)
    return path


def log_summary(result: ProcessingResult) -> None:
    logger.info("=== Processing Summary ===")
    logger.info("Files changed: %d/%d", result.changed_files, result.total_files)
    logger.info("Images processed: %d", result.images.processed)
    logger.info("Hanging prepositions fixed: %d", result.text.hanging_prepositions_fixed)
    logger.info("Superscript replacements: %d", result.text.superscript_replacements)
    logger.info("CSS files processed: %d", result.css.processed)
    logger.info("CSS background images optimized: %d", result.css.background_images_processed)
    if result.errors:
        logger.warning("Errors encountered: %d", len(result.errors))
    if result.warnings:
        logger.warning("Warnings generated: %d", len(result.warnings))
