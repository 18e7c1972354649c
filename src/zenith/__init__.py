"""Zenith - natural-language interface over system telemetry."""

__version__ = "0.3.0"
