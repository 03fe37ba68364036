"""Ahurasense Core - issue & board consistency engine."""

__version__ = "1.0.0"
