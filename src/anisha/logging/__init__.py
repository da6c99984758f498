"""Structured session-event logging."""
