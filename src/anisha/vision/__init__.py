"""Presence tracking and optional camera source."""
