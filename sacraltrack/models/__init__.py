"""SQLAlchemy models."""

from .base import Base
from .track import Track  # noqa: F401

__all__ = ["Base", "Track"]
