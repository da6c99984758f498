"""ANISHA: a multilingual conversational session with speech, presence and memory."""

__version__ = "0.1.0"
