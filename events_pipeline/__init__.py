"""Event discovery and consolidation pipeline."""

__version__ = "0.1.0"
