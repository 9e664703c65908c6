"""Persistence of packaged tracks."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sacraltrack.models.track import Track
from sacraltrack.pipelines.audio.types import PackagedTrack

logger = logging.getLogger(__name__)


class TrackRepositoryError(RuntimeError):
    """Raised when a track record cannot be written."""


class TrackRepository:
    """Read/write access to `Track` rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        packaged: PackagedTrack,
        *,
        name: str,
        artist: str,
        genre: str | None = None,
    ) -> Track:
        track = Track(
            id=packaged.track_id,
            name=name,
            artist=artist,
            genre=genre,
            duration=packaged.duration,
            audio_id=packaged.audio_id,
            audio_url=packaged.audio_url,
            manifest_id=packaged.manifest_id,
            manifest_url=packaged.manifest_url,
            segment_ids=packaged.segment_ids,
            segment_urls=packaged.segment_urls,
        )
        self._session.add(track)
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Failed to persist track %s", packaged.track_id)
            raise TrackRepositoryError(f"Could not save track {packaged.track_id}") from exc
        return track

    async def get(self, track_id: str) -> Optional[Track]:
        result = await self._session.execute(select(Track).where(Track.id == track_id))
        return result.scalar_one_or_none()


__all__ = ["TrackRepository", "TrackRepositoryError"]
