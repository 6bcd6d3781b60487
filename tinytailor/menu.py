"""Numbered prompts for choosing what a run should do."""

from __future__ import annotations

from typing import Callable, List, Tuple

from .models import TextFeatures
from .processor import CSS_MODULE, IMAGE_MODULE, SIZE_MODULE, TEXT_MODULE

MENU_CHOICES = [
    ("images", "Image optimization (WebP conversion, mobile versions, compression)"),
    ("prepositions", "Fix hanging prepositions (replace spaces with &nbsp;)"),
    ("superscript", "Convert units to superscript (м2 -> м<sup>2</sup>)"),
    ("sizes", "Check image sizes (experimental)"),
    ("css", "CSS WebP optimization for background-image rules"),
    ("all", "Run all enabled modules"),
]

Prompt = Callable[[str], str]


def selections_to_modules(selections: List[str]) -> Tuple[List[str], TextFeatures]:
    """Translate menu keys into processor modules and text sub-features."""
    chosen = set(selections)
    everything = "all" in chosen
    features = TextFeatures(
        hanging_prepositions=everything or "prepositions" in chosen,
        superscripts=everything or "superscript" in chosen,
    )
    modules: List[str] = []
    if everything or "images" in chosen:
        modules.append(IMAGE_MODULE)
    if features.any:
        modules.append(TEXT_MODULE)
    if everything or "sizes" in chosen:
        modules.append(SIZE_MODULE)
    if everything or "css" in chosen:
        modules.append(CSS_MODULE)
    return modules, features


def parse_selection(answer: str) -> List[str]:
    """Parse ``"1, 3"`` or ``"1 3"`` into menu keys; raises ``ValueError`` on bad input."""
    keys: List[str] = []
    for part in answer.replace(",", " ").split():
        index = int(part)
        if not 1 <= index <= len(MENU_CHOICES):
            raise ValueError(f"choice out of range: {index}")
        key = MENU_CHOICES[index - 1][0]
        if key not in keys:
            keys.append(key)
    if not keys:
        raise ValueError("no choice given")
    return keys


def show_main_menu(prompt: Prompt = input) -> Tuple[List[str], TextFeatures]:
    print("\nTinyTailor processing options\n")
    for index, (_, label) in enumerate(MENU_CHOICES, start=1):
        print(f"  {index}. {label}")
    while True:
        answer = prompt("\nSelect modules (numbers separated by commas): ")
        try:
            return selections_to_modules(parse_selection(answer))
        except ValueError:
            print("You must choose at least one valid processing module.")


def confirm(message: str, default: bool = True, prompt: Prompt = input) -> bool:
    suffix = " [Y/n] " if default else " [y/N] "
    answer = prompt(message + suffix).strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")
