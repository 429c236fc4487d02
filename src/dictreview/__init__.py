"""Spaced review scheduling for dictation practice."""

__version__ = "0.1.0"
