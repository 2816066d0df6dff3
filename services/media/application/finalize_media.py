from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from tempfile import TemporaryDirectory

from services.media.application.dto import MediaMetadata
from services.media.application.interfaces import (
    CategoryRepository,
    FrameExtractor,
    KeyProvider,
    ObjectStore,
    VideoRepository,
)
from services.media.domain.errors import ValidationError
from services.media.domain.media import Category, CoverUpload, MediaRecord, NewMediaRecord

logger = logging.getLogger(__name__)

COVER_SUBDIR = "covers"


class FinalizeMediaUseCase:
    """Attaches a cover to a committed video object and persists the record."""

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        key_provider: KeyProvider,
        categories: CategoryRepository,
        videos: VideoRepository,
        frame_extractor: FrameExtractor,
        thumbnail_size: str = "320x240",
        frame_timestamp_seconds: float = 1.0,
    ) -> None:
        self._store = object_store
        self._keys = key_provider
        self._categories = categories
        self._videos = videos
        self._frames = frame_extractor
        self._thumbnail_size = thumbnail_size
        self._frame_timestamp = frame_timestamp_seconds

    def resolve_category(self, category_id: int | None) -> Category:
        if category_id is None:
            raise ValidationError("categoryId is required")
        category = self._categories.get(int(category_id))
        if category is None:
            raise ValidationError(f"Category {category_id} does not exist")
        return category

    async def execute(
        self, *, video_key: str, frame_source: str, metadata: MediaMetadata
    ) -> MediaRecord:
        category = self.resolve_category(metadata.category_id)

        if metadata.cover is not None:
            cover_url = await self._upload_cover(metadata.cover)
        else:
            cover_url = await self._extract_cover(frame_source, video_key)

        record = self._videos.create(
            NewMediaRecord(
                title=metadata.title or "",
                description=metadata.description,
                category=category.name,
                category_id=category.category_id,
                video_url=self._store.public_url(video_key),
                cover_url=cover_url,
            )
        )
        logger.info("Persisted video %s for %s", record.video_id, video_key)
        return record

    async def _upload_cover(self, cover: CoverUpload) -> str:
        cover_key = self._keys.generate(cover.filename, subdir=COVER_SUBDIR)
        await self._store.put_object(
            cover_key, cover.data, cover.content_type or "image/jpeg"
        )
        return self._store.public_url(cover_key)

    async def _extract_cover(self, frame_source: str, video_key: str) -> str | None:
        try:
            with TemporaryDirectory() as tmpdir:
                destination = Path(tmpdir) / "autocover.jpg"
                frame_path = await asyncio.to_thread(
                    self._frames.extract,
                    source=frame_source,
                    destination=destination,
                    timestamp_seconds=self._frame_timestamp,
                    size=self._thumbnail_size,
                )
                data = frame_path.read_bytes()
            cover_key = self._keys.generate("autocover.jpg", subdir=COVER_SUBDIR)
            await self._store.put_object(cover_key, data, "image/jpeg")
        except Exception as exc:
            logger.warning(
                "Automatic cover extraction failed for %s; saving without cover: %s",
                video_key,
                exc,
            )
            return None
        return self._store.public_url(cover_key)
