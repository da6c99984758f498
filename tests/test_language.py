"""Tests for script-range language tagging."""

import pytest

from anisha.core.language import (
    DEFAULT_LANGUAGE,
    Language,
    detect_language,
    display_name,
    locale_code,
    parse_language,
)


class TestDetectLanguage:
    def test_devanagari_tags_hindi(self):
        assert detect_language("नमस्ते, आप कैसे हैं?") is Language.HI

    def test_bengali_assamese_block_tags_assamese(self):
        assert detect_language("আপুনি কেনে আছে?") is Language.AS

    def test_assamese_checked_before_hindi(self):
        assert detect_language("नमस्ते আপুনি") is Language.AS

    @pytest.mark.parametrize("text", ["hello there", "", "12345 !?", "café"])
    def test_no_distinguishing_glyphs_is_default(self, text):
        assert detect_language(text) is DEFAULT_LANGUAGE

    def test_mixed_latin_and_devanagari(self):
        assert detect_language("I said नमस्ते") is Language.HI


class TestParseLanguage:
    @pytest.mark.parametrize("value,expected", [
        ("hi", Language.HI),
        ("HI-in", Language.HI),
        ("Assamese", Language.AS),
        (" en ", Language.EN),
        (Language.AS, Language.AS),
    ])
    def test_known_values(self, value, expected):
        assert parse_language(value) is expected

    @pytest.mark.parametrize("value", [None, "", "fr", "klingon"])
    def test_unknown_values_fall_back(self, value):
        assert parse_language(value) is DEFAULT_LANGUAGE


def test_locale_and_display_names():
    assert locale_code(Language.HI) == "hi-IN"
    assert locale_code(Language.AS) == "as-IN"
    assert display_name(Language.EN) == "English"
