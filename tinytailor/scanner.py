"""Locate `<picture>` blocks, standalone `<img>` tags and text segments in markup."""

from __future__ import annotations

import re
from bisect import bisect_left
from typing import List

from .models import Region, Segment

PICTURE_OPEN = re.compile(r"<picture\b[^>]*>", re.IGNORECASE)
PICTURE_CLOSE = re.compile(r"</picture\s*>", re.IGNORECASE)
IMG_TAG = re.compile(r"<img\b(?:[^>\"']|\"[^\"]*\"|'[^']*')*>", re.IGNORECASE)

# Template expressions are matched before generic tags so `{{ $a->b }}` stays whole.
TOKEN_PATTERN = re.compile(r"\{!!.*?!!\}|\{\{.*?\}\}|<[^>]*>", re.DOTALL)
RAW_TEXT_OPEN = re.compile(r"<(script|style)\b", re.IGNORECASE)
SUP_OPEN = re.compile(r"<sup\b", re.IGNORECASE)
SUP_CLOSE = re.compile(r"</sup\s*>", re.IGNORECASE)
INDENT_PATTERN = re.compile(r"[ \t]*")


def line_indent(text: str, index: int) -> str:
    """Leading whitespace of the line containing ``index``."""
    line_start = text.rfind("\n", 0, index) + 1
    return INDENT_PATTERN.match(text, line_start).group(0)


def find_picture_blocks(text: str) -> List[Region]:
    regions: List[Region] = []
    pos = 0
    while True:
        opening = PICTURE_OPEN.search(text, pos)
        if not opening:
            break
        closing = PICTURE_CLOSE.search(text, opening.end())
        if not closing:
            break
        # Another open before our close means this one is unterminated.
        nested = PICTURE_OPEN.search(text, opening.end(), closing.start())
        if nested:
            pos = nested.start()
            continue
        regions.append(
            Region(
                start=opening.start(),
                end=closing.end(),
                inner=text[opening.end() : closing.start()],
                open_tag=opening.group(0),
                close_tag=closing.group(0),
                indent=line_indent(text, opening.start()),
                kind="picture",
            )
        )
        pos = closing.end()
    return regions


def find_loose_images(text: str) -> List[Region]:
    """Return `<img>` tags that sit outside every `<picture>` block."""
    opens = [match.start() for match in PICTURE_OPEN.finditer(text)]
    closes = [match.start() for match in PICTURE_CLOSE.finditer(text)]
    regions: List[Region] = []
    for match in IMG_TAG.finditer(text):
        position = match.start()
        if bisect_left(opens, position) != bisect_left(closes, position):
            continue
        regions.append(
            Region(
                start=position,
                end=match.end(),
                inner=match.group(0),
                open_tag="",
                close_tag="",
                indent=line_indent(text, position),
                kind="img",
            )
        )
    return regions


def scan_regions(text: str, include_loose: bool = False) -> List[Region]:
    """Merge picture blocks and (optionally) loose images in document order."""
    regions = find_picture_blocks(text)
    if include_loose:
        pictures = list(regions)
        for image in find_loose_images(text):
            if any(block.start < image.end and image.start < block.end for block in pictures):
                continue
            regions.append(image)
    regions.sort(key=lambda region: region.start)
    return regions


def split_segments(text: str, track_sup: bool = False) -> List[Segment]:
    """Split markup into ``tag``, ``text``, ``protected`` and ``sup`` segments.

    Joining the contents of the returned segments reproduces ``text``.
    Only ``text`` segments are meant to be rewritten: script and style
    bodies and template expressions are ``protected``, and with
    ``track_sup`` the text inside ``<sup>`` elements is ``sup``.
    """
    segments: List[Segment] = []
    sup_depth = 0

    def push(kind: str, content: str) -> None:
        if content:
            segments.append(Segment(kind, content))

    def text_kind() -> str:
        return "sup" if sup_depth > 0 else "text"

    pos = 0
    length = len(text)
    while pos < length:
        match = TOKEN_PATTERN.search(text, pos)
        if not match:
            push(text_kind(), text[pos:])
            break
        push(text_kind(), text[pos : match.start()])
        token = match.group(0)
        pos = match.end()
        if token.startswith("{"):
            push("protected", token)
            continue
        push("tag", token)

        raw_text = RAW_TEXT_OPEN.match(token)
        if raw_text and not token.endswith("/>"):
            closing = re.compile(rf"</{raw_text.group(1)}\s*>", re.IGNORECASE).search(text, pos)
            body_end = closing.start() if closing else length
            push("protected", text[pos:body_end])
            if closing:
                push("tag", closing.group(0))
                pos = closing.end()
            else:
                pos = length
            continue

        if track_sup:
            if SUP_OPEN.match(token):
                sup_depth += 1
            elif SUP_CLOSE.match(token):
                sup_depth = max(0, sup_depth - 1)
    return segments
