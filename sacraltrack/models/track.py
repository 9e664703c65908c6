"""SQLAlchemy model for packaged tracks."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, String

from sacraltrack.models.base import Base


class Track(Base):
    __tablename__ = "tracks"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False)
    genre = Column(String(100), nullable=True)
    duration = Column(Float, nullable=False)
    audio_id = Column(String(64), nullable=False)
    audio_url = Column(String(2048), nullable=False)
    manifest_id = Column(String(64), nullable=False)
    manifest_url = Column(String(2048), nullable=False)
    # Positional: index i is segment i of the playlist.
    segment_ids = Column(JSON, nullable=False, default=list)
    segment_urls = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


__all__ = ["Track"]
