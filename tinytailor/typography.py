"""Typographic fixes for markup text: hanging short words and unit superscripts."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .config import ReplacementRule, TinyTailorConfig
from .models import StageResult, TextFeatures, TextStats
from .scanner import split_segments

logger = logging.getLogger("tinytailor")

NBSP = "&nbsp;"
TRAILING_SPACES = re.compile(r"[ \t]*$")
VUE_TEMPLATE_OPEN = re.compile(r"<template\b[^>]*>", re.IGNORECASE)
VUE_TEMPLATE_CLOSE = "</template>"


@lru_cache(maxsize=512)
def _token_pattern(token: str) -> "re.Pattern[str]":
    return re.compile(
        rf"(^|\s)({re.escape(token)})(\s+)(?=\S)",
        re.IGNORECASE | re.MULTILINE,
    )


@lru_cache(maxsize=128)
def _unit_pattern(match: str) -> "re.Pattern[str]":
    return re.compile(rf"(^|\s|[0-9]){re.escape(match)}(?=\s|$|[.,;:!?])", re.IGNORECASE)


def _rewrite_text_segments(
    text: str,
    rewrite: Callable[[str], Tuple[str, int]],
    track_sup: bool = False,
) -> Tuple[str, int]:
    total = 0
    parts: List[str] = []
    for segment in split_segments(text, track_sup=track_sup):
        if segment.kind == "text":
            new_content, count = rewrite(segment.content)
            total += count
            parts.append(new_content)
        else:
            parts.append(segment.content)
    return "".join(parts), total


def fix_hanging_prepositions(text: str, tokens: Sequence[str]) -> Tuple[str, int]:
    """Bind each short word to the following word with ``&nbsp;``.

    Only text outside tags is touched. A whitespace run that spans a line
    break keeps the break and only its trailing spaces become ``&nbsp;``.
    """
    total = 0
    for token in tokens:
        token = token.strip()
        if not token:
            continue
        pattern = _token_pattern(token)

        def rewrite(segment: str) -> Tuple[str, int]:
            count = 0

            def replace(match: "re.Match[str]") -> str:
                nonlocal count
                prefix, word, space = match.groups()
                if "\n" in space or "\r" in space:
                    tail = TRAILING_SPACES.search(space).group(0)
                    if not tail:
                        return match.group(0)
                    count += 1
                    return prefix + word + space[: len(space) - len(tail)] + NBSP
                count += 1
                return prefix + word + NBSP

            return pattern.sub(replace, segment), count

        text, count = _rewrite_text_segments(text, rewrite)
        total += count
    return text, total


def apply_superscripts(text: str, rules: Sequence[ReplacementRule]) -> Tuple[str, int]:
    """Replace unit tokens such as ``м2`` with their superscript markup."""
    total = 0
    for rule in rules:
        if not rule.match:
            continue
        pattern = _unit_pattern(rule.match)

        def rewrite(segment: str, rule: ReplacementRule = rule) -> Tuple[str, int]:
            count = 0

            def replace(match: "re.Match[str]") -> str:
                nonlocal count
                count += 1
                return match.group(1) + rule.replacement

            return pattern.sub(replace, segment), count

        text, count = _rewrite_text_segments(text, rewrite, track_sup=True)
        total += count
    return text, total


def vue_template_span(content: str) -> Optional[Tuple[int, int]]:
    """Bounds of the outer `<template>` body of a Vue single-file component."""
    opening = VUE_TEMPLATE_OPEN.search(content)
    if not opening:
        return None
    closing = content.lower().rfind(VUE_TEMPLATE_CLOSE)
    if closing < opening.end():
        return None
    return opening.end(), closing


def _matches_extension(path: Path, extensions: Sequence[str]) -> bool:
    name = path.name.lower()
    return any(name.endswith(ext.lower()) for ext in extensions)


class TextProcessor:
    def __init__(self, config: TinyTailorConfig, features: Optional[TextFeatures] = None) -> None:
        self.options = config.text_processing
        self.features = features or TextFeatures()

    def process(self, doc_path: Path, content: str) -> StageResult:
        stats = TextStats()
        hanging = self.options.hanging_prepositions
        if not _matches_extension(doc_path, hanging.file_extensions):
            return StageResult(content=content, changed=False, text=stats)

        start, end = 0, len(content)
        if doc_path.suffix.lower() == ".vue":
            span = vue_template_span(content)
            if span is None:
                logger.debug("No <template> section in %s", doc_path)
                return StageResult(content=content, changed=False, text=stats)
            start, end = span

        section = content[start:end]
        if self.features.hanging_prepositions and hanging.enabled:
            section, count = fix_hanging_prepositions(section, hanging.prepositions)
            if count:
                stats.hanging_prepositions_fixed += count
                logger.info("Hanging prepositions: %s | %d changes", doc_path, count)

        superscripts = self.options.superscript_replacements
        if self.features.superscripts and superscripts.enabled:
            section, count = apply_superscripts(section, superscripts.replacements)
            if count:
                stats.superscript_replacements += count
                logger.info("Superscript units: %s | %d changes", doc_path, count)

        new_content = content[:start] + section + content[end:]
        return StageResult(content=new_content, changed=new_content != content, text=stats)
