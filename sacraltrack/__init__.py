"""Sacral Track audio ingestion backend."""

__version__ = "1.0.0"
