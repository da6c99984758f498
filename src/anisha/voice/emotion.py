"""Reply post-processing: markup stripping and emotion labelling.

The emotion scan is a lower-cased substring scan over the vocabulary of every
supported language at once; a reply may borrow words from another language.
"""

from __future__ import annotations

import re

from ..core.turn import Emotion

# Happiness terms (English, Hindi, Assamese/Bengali). Checked first.
HAPPY_WORDS = (
    "happy", "great", "wonderful", "awesome", "excellent",
    "सुखी",
    "খুশী",
)

# Concern / problem terms.
CONCERN_WORDS = (
    "concerned", "worry", "problem", "issue", "sad",
    "चिंतित",
    "চিন্তিত",
)

_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]*", re.MULTILINE)
_BULLET = re.compile(r"^([ \t]*)[-+*][ \t]+", re.MULTILINE)
_EMPHASIS = re.compile(r"[*_`]+")
_BLANK_RUNS = re.compile(r"\n{3,}")


def clean_reply_text(text: str) -> str:
    """Strip list/heading/emphasis markers and collapse blank-line runs."""
    if not text:
        return ""
    out = text.replace("\r\n", "\n")
    out = _HEADING.sub("", out)
    out = _BULLET.sub(r"\1", out)
    out = _EMPHASIS.sub("", out)
    out = _BLANK_RUNS.sub("\n\n", out)
    return out.strip()


def detect_emotion(text: str) -> Emotion:
    """Label text happy, concerned or calm from indicative vocabulary."""
    low = (text or "").lower()
    if any(w in low for w in HAPPY_WORDS):
        return Emotion.HAPPY
    if any(w in low for w in CONCERN_WORDS):
        return Emotion.CONCERNED
    return Emotion.CALM
