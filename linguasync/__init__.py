"""linguasync - keep content items and their translations in sync."""

__version__ = "0.1.0"
