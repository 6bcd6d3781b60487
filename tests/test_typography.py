from pathlib import Path

from tinytailor.config import ReplacementRule
from tinytailor.models import TextFeatures
from tinytailor.typography import (
    TextProcessor,
    apply_superscripts,
    fix_hanging_prepositions,
    vue_template_span,
)

UNIT_RULES = [ReplacementRule("м2", "м<sup>2</sup>"), ReplacementRule("км2", "км<sup>2</sup>")]


def test_prepositions_are_bound_to_next_word():
    text, count = fix_hanging_prepositions("текст с предлогами в начале", ["с", "в"])
    assert text == "текст с&nbsp;предлогами в&nbsp;начале"
    assert count == 2


def test_trailing_token_never_matches():
    text, count = fix_hanging_prepositions("вышел за.", ["за"])
    assert text == "вышел за."
    assert count == 0


def test_attribute_text_is_not_rewritten():
    source = '<div class="в-has-preposition-like-text">текст в контейнере</div>'
    text, count = fix_hanging_prepositions(source, ["в"])
    assert count == 1
    assert text == '<div class="в-has-preposition-like-text">текст в&nbsp;контейнере</div>'


def test_match_is_case_insensitive_and_keeps_case():
    text, count = fix_hanging_prepositions("В доме and The end", ["в", "the"])
    assert text == "В&nbsp;доме and The&nbsp;end"
    assert count == 2


def test_line_breaks_are_kept():
    text, count = fix_hanging_prepositions("в\n  доме", ["в"])
    assert text == "в\n&nbsp;доме"
    assert count == 1

    text, count = fix_hanging_prepositions("в\nдоме", ["в"])
    assert text == "в\nдоме"
    assert count == 0


def test_protected_segments_are_untouched():
    source = "<script>var s = 'в доме';</script>{{ в доме }}<p>в доме</p>"
    text, count = fix_hanging_prepositions(source, ["в"])
    assert count == 1
    assert text == "<script>var s = 'в доме';</script>{{ в доме }}<p>в&nbsp;доме</p>"


def test_fix_is_a_fixed_point():
    once, _ = fix_hanging_prepositions("и в доме и в саду", ["и", "в"])
    twice, count = fix_hanging_prepositions(once, ["и", "в"])
    assert twice == once
    assert count == 0


def test_superscripts_skip_existing_sup():
    source = "<p><sup>м2</sup> и площадь 100 м2.</p>"
    text, count = apply_superscripts(source, UNIT_RULES)
    assert text == "<p><sup>м2</sup> и площадь 100 м<sup>2</sup>.</p>"
    assert count == 1

    again, count = apply_superscripts(text, UNIT_RULES)
    assert again == text
    assert count == 0


def test_superscripts_after_digits_and_longer_units():
    text, count = apply_superscripts("100м2, 5 км2 и м2x", UNIT_RULES)
    assert text == "100м<sup>2</sup>, 5 км<sup>2</sup> и м2x"
    assert count == 2


def test_vue_template_span_uses_outer_template():
    content = "<template>\n<div><template v-if='a'>x</template></div>\n</template>\n<script></script>"
    start, end = vue_template_span(content)
    assert content[start:end] == "\n<div><template v-if='a'>x</template></div>\n"
    assert vue_template_span("<script>export default {}</script>") is None


def test_text_processor_only_touches_vue_template(config):
    content = "<template>\n  <p>в доме 10 м2</p>\n</template>\n<script>\nconst s = 'в доме';\n</script>\n"
    result = TextProcessor(config).process(Path("Card.vue"), content)
    assert result.changed
    assert "<p>в&nbsp;доме 10 м<sup>2</sup></p>" in result.content
    assert "const s = 'в доме';" in result.content
    assert result.text.hanging_prepositions_fixed == 1
    assert result.text.superscript_replacements == 1


def test_text_processor_respects_features(config):
    processor = TextProcessor(config, TextFeatures(hanging_prepositions=False, superscripts=True))
    result = processor.process(Path("page.html"), "<p>в доме 10 м2</p>")
    assert result.content == "<p>в доме 10 м<sup>2</sup></p>"
    assert result.text.hanging_prepositions_fixed == 0


def test_text_processor_respects_file_extensions(config):
    config.text_processing.hanging_prepositions.file_extensions = [".html"]
    result = TextProcessor(config).process(Path("page.blade.php"), "<p>в доме</p>")
    assert not result.changed


def test_files_outside_text_extensions_are_left_alone(config):
    result = TextProcessor(config).process(Path("app.js"), "Area 100 м2 total\n")
    assert not result.changed
    assert result.content == "Area 100 м2 total\n"
    assert result.text.superscript_replacements == 0
