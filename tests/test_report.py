import logging

from tinytailor.models import ProcessingError, ProcessingResult, ProcessingWarning
from tinytailor.report import ReportCollector, compose_report, write_report


def _result():
    result = ProcessingResult(changed_files=2, total_files=5)
    result.images.processed = 3
    result.text.hanging_prepositions_fixed = 7
    result.errors.append(ProcessingError("a.html", "boom", "Traceback (most recent call last):\nRuntimeError: boom"))
    result.warnings.append(ProcessingWarning("b.html", "Image too wide", "Resize it"))
    return result


def test_compose_report_sections():
    report = compose_report(_result(), ["12:00:00 [INFO] Updated: a.html"], modules=["text-processing"])
    assert report.startswith("# TinyTailor Processing Report")
    assert "| Files changed | 2/5 |" in report
    assert "| Hanging prepositions fixed | 7 |" in report
    assert "- **a.html**: boom" in report
    assert "RuntimeError: boom" in report
    assert "<details>" in report
    assert "- **b.html**: Image too wide _(suggestion: Resize it)_" in report
    assert "12:00:00 [INFO] Updated: a.html" in report
    assert "- Modules: text-processing" in report


def test_write_report_uses_timestamped_name(tmp_path):
    path = write_report(ProcessingResult(), tmp_path / "reports")
    assert path.parent == tmp_path / "reports"
    assert path.name.startswith("tailorreport_")
    assert path.suffix == ".md"
    assert "## Errors" not in path.read_text(encoding="utf-8")


def test_collector_keeps_info_and_above():
    collector = ReportCollector()
    log = logging.getLogger("tinytailor.test-collector")
    log.setLevel(logging.DEBUG)
    log.addHandler(collector)
    try:
        log.debug("hidden")
        log.info("shown %d", 1)
        log.warning("careful")
    finally:
        log.removeHandler(collector)
    assert len(collector.lines) == 2
    assert collector.lines[0].endswith("[INFO] shown 1")
    assert collector.lines[1].endswith("[WARNING] careful")
