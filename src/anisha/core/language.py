"""Script-range language tagging for ANISHA.

Classifies a text fragment into one of the supported written languages by
looking for indicative glyph ranges. Pure functions, no state.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional, Union


class Language(str, Enum):
    """Written languages ANISHA can tag, prompt and speak."""

    EN = "en"
    HI = "hi"
    AS = "as"


DEFAULT_LANGUAGE = Language.EN

# Order matters: Assamese is checked before Devanagari.
_SCRIPT_RANGES = (
    (Language.AS, re.compile(r"[ঀ-৿]")),
    (Language.HI, re.compile(r"[ऀ-ॿ]")),
)

LOCALE_CODES = {
    Language.EN: "en-US",
    Language.HI: "hi-IN",
    Language.AS: "as-IN",
}

DISPLAY_NAMES = {
    Language.EN: "English",
    Language.HI: "Hindi",
    Language.AS: "Assamese",
}


def detect_language(text: str) -> Language:
    """Tag text by the first recognised script it contains.

    Text without any distinguishing glyphs tags as the default language.
    """
    for language, pattern in _SCRIPT_RANGES:
        if pattern.search(text or ""):
            return language
    return DEFAULT_LANGUAGE


def parse_language(value: Optional[Union[str, Language]]) -> Language:
    """Resolve a user or config supplied tag ("hi", "hi-IN", "Hindi") to a Language."""
    if isinstance(value, Language):
        return value
    if not value:
        return DEFAULT_LANGUAGE

    key = str(value).strip().lower()
    for language in Language:
        if key == language.value:
            return language
        if key == LOCALE_CODES[language].lower():
            return language
        if key == DISPLAY_NAMES[language].lower():
            return language
    return DEFAULT_LANGUAGE


def locale_code(language: Language) -> str:
    """Recognizer/synthesizer locale for a language."""
    return LOCALE_CODES.get(language, LOCALE_CODES[DEFAULT_LANGUAGE])


def display_name(language: Language) -> str:
    return DISPLAY_NAMES.get(language, "Unknown")
