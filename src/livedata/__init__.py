"""Waylight live theme park data: upstream sync, storage and cached reads."""

__version__ = "1.0.0"
