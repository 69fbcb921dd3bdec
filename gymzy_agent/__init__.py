"""Gymzy coach agent: intent routing, workout generation and app control."""

__version__ = "0.3.0"
