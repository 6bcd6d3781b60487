"""Sequential batch driver that runs the rewriting stages over a project tree."""

from __future__ import annotations

import logging
import time
import traceback
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import TinyTailorConfig
from .css import CssRewriter
from .models import ProcessingError, ProcessingResult, StageResult, TextFeatures
from .pictures import ImageRewriter
from .sizes import SizeChecker
from .typography import TextProcessor
from .utils import read_document, scan_files, write_text_atomic

logger = logging.getLogger("tinytailor")

IMAGE_MODULE = "image-optimization"
TEXT_MODULE = "text-processing"
SIZE_MODULE = "size-checking"
CSS_MODULE = "css-optimization"
ALL_MODULES = (IMAGE_MODULE, TEXT_MODULE, SIZE_MODULE, CSS_MODULE)


class TinyTailorProcessor:
    """Read each document once, run the selected stages and write it back once."""

    def __init__(self, config: TinyTailorConfig, features: Optional[TextFeatures] = None) -> None:
        self.config = config
        self.features = features or TextFeatures()
        self.images = ImageRewriter(config)
        self.text = TextProcessor(config, self.features)
        self.css = CssRewriter(config)
        self.sizes = SizeChecker(config, self.images.resolver)

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.config.project_root).as_posix()
        except ValueError:
            return str(path)

    def is_stylesheet(self, path: Path) -> bool:
        name = path.name.lower()
        return any(name.endswith(ext.lower()) for ext in self.config.css_optimization.file_extensions)

    def discover_files(self, modules: Iterable[str]) -> List[Path]:
        globs = list(self.config.scan_globs)
        if CSS_MODULE in modules and self.config.css_optimization.enabled:
            globs.extend(f"**/*{ext}" for ext in self.config.css_optimization.file_extensions)
        files = scan_files(
            globs,
            self.config.project_root,
            exclude_paths=self.config.exclude_paths,
            exclude_files=self.config.exclude_files,
        )
        logger.info("Found %d files to process", len(files))
        return files

    def process_files(
        self,
        modules: Sequence[str],
        files: Optional[List[Path]] = None,
    ) -> ProcessingResult:
        start = time.perf_counter()
        result = ProcessingResult()
        if files is None:
            files = self.discover_files(modules)
        result.total_files = len(files)

        for path in files:
            try:
                if self.process_document(path, modules, result):
                    result.changed_files += 1
                    logger.info("Updated: %s", self.relative(path))
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Error processing %s: %s", self.relative(path), exc)
                result.errors.append(
                    ProcessingError(
                        file=self.relative(path),
                        message=str(exc) or exc.__class__.__name__,
                        stack=traceback.format_exc(),
                    )
                )

        if SIZE_MODULE in modules and self.config.size_checking.enabled:
            markup = [path for path in files if not self.is_stylesheet(path)]
            result.warnings.extend(self.sizes.check_files(markup))

        result.elapsed_seconds = time.perf_counter() - start
        logger.info("Processing completed in %.2fs", result.elapsed_seconds)
        return result

    def process_document(self, path: Path, modules: Sequence[str], result: ProcessingResult) -> bool:
        """Run the stages that apply to ``path``; return whether it was rewritten."""
        original = read_document(path)
        content = original
        stages: List[StageResult] = []

        if self.is_stylesheet(path):
            if CSS_MODULE in modules and self.config.css_optimization.enabled:
                stages.append(self.css.rewrite(path, content))
                content = stages[-1].content
        else:
            if IMAGE_MODULE in modules and self.config.image_optimization.enabled:
                stages.append(self.images.rewrite(path, content))
                content = stages[-1].content
            if TEXT_MODULE in modules and self.features.any:
                stages.append(self.text.process(path, content))
                content = stages[-1].content

        for stage in stages:
            result.images.add(stage.images)
            result.text.add(stage.text)
            result.css.add(stage.css)

        if content == original:
            return False
        write_text_atomic(path, content)
        return True
