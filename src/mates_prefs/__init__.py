"""Preference sync for Matrix: per-user colors in account data and space state."""

__version__ = "0.1.0"
