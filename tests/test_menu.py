import pytest

from tinytailor.menu import confirm, parse_selection, selections_to_modules, show_main_menu
from tinytailor.processor import CSS_MODULE, IMAGE_MODULE, SIZE_MODULE, TEXT_MODULE


def test_parse_selection_accepts_commas_and_spaces():
    assert parse_selection("1, 5") == ["images", "css"]
    assert parse_selection("2 2 3") == ["prepositions", "superscript"]
    for bad in ("", "0", "7", "x"):
        with pytest.raises(ValueError):
            parse_selection(bad)


def test_all_selects_every_module_and_feature():
    modules, features = selections_to_modules(["all"])
    assert modules == [IMAGE_MODULE, TEXT_MODULE, SIZE_MODULE, CSS_MODULE]
    assert features.hanging_prepositions and features.superscripts


def test_text_features_follow_selection():
    modules, features = selections_to_modules(["prepositions"])
    assert modules == [TEXT_MODULE]
    assert features.hanging_prepositions
    assert not features.superscripts


def test_menu_reprompts_until_valid(capsys):
    answers = iter(["", "9", "1"])
    modules, _ = show_main_menu(prompt=lambda message: next(answers))
    assert modules == [IMAGE_MODULE]
    assert "at least one" in capsys.readouterr().out


def test_confirm_defaults():
    assert confirm("Go?", prompt=lambda message: "") is True
    assert confirm("Go?", default=False, prompt=lambda message: "") is False
    assert confirm("Go?", default=False, prompt=lambda message: "Yes") is True
