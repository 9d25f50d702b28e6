"""Publish Notion databases as configurable web forms."""

__version__ = "0.1.0"
