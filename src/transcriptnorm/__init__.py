"""Flatten call transcript exports into one speaker-attributed row per call."""

__version__ = "0.1.0"
