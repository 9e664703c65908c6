"""FastAPI routers acting as controllers in the MVC architecture."""

from . import audio

__all__ = ["audio"]
