from __future__ import annotations

import logging
from typing import List

from services.media.application.dto import UpdateVideoCommand
from services.media.application.interfaces import (
    CategoryRepository,
    ObjectStore,
    VideoRepository,
)
from services.media.domain.errors import ConflictError, NotFoundError, ValidationError
from services.media.domain.media import Category, MediaPage, MediaRecord

logger = logging.getLogger(__name__)


class ListCategoriesUseCase:
    def __init__(self, categories: CategoryRepository) -> None:
        self._categories = categories

    def execute(self) -> List[Category]:
        return self._categories.list()


class AddCategoryUseCase:
    def __init__(self, categories: CategoryRepository) -> None:
        self._categories = categories

    def execute(self, name: str | None) -> Category:
        normalized = (name or "").strip()
        if not normalized:
            raise ValidationError("Category name must not be blank")
        if self._categories.find_by_name(normalized) is not None:
            raise ConflictError(f"Category {normalized!r} already exists")
        return self._categories.create(normalized)


class DeleteCategoryUseCase:
    def __init__(
        self, *, categories: CategoryRepository, videos: VideoRepository
    ) -> None:
        self._categories = categories
        self._videos = videos

    def execute(self, category_id: int) -> None:
        if self._videos.exists_for_category(category_id):
            raise ConflictError("Category still has videos and cannot be deleted")
        if not self._categories.delete(category_id):
            raise NotFoundError(f"Category {category_id} not found")


class ListVideosUseCase:
    def __init__(self, videos: VideoRepository) -> None:
        self._videos = videos

    def execute(
        self, *, category_id: int | None = None, page: int = 1, page_size: int = 10
    ) -> MediaPage:
        if page < 1 or page_size < 1:
            raise ValidationError("page and pageSize must be positive integers")
        return self._videos.list(category_id=category_id, page=page, page_size=page_size)


class GetVideoUseCase:
    def __init__(self, videos: VideoRepository) -> None:
        self._videos = videos

    def execute(self, video_id: int) -> MediaRecord:
        record = self._videos.get(video_id)
        if record is None:
            raise NotFoundError(f"Video {video_id} not found")
        return record


class UpdateVideoUseCase:
    def __init__(
        self, *, categories: CategoryRepository, videos: VideoRepository
    ) -> None:
        self._categories = categories
        self._videos = videos

    def execute(self, command: UpdateVideoCommand) -> MediaRecord:
        if self._videos.get(command.video_id) is None:
            raise NotFoundError(f"Video {command.video_id} not found")

        fields: dict[str, object] = {}
        if command.title:
            fields["title"] = command.title
        if command.description:
            fields["description"] = command.description
        if command.category_id is not None:
            category = self._categories.get(command.category_id)
            if category is None:
                raise NotFoundError(f"Category {command.category_id} not found")
            fields["category_id"] = category.category_id
            fields["category"] = category.name

        record = self._videos.update(command.video_id, **fields)
        if record is None:
            raise NotFoundError(f"Video {command.video_id} not found")
        return record


class DeleteVideoUseCase:
    """Deletes the row and best-effort removes the video and cover objects."""

    def __init__(self, *, videos: VideoRepository, object_store: ObjectStore) -> None:
        self._videos = videos
        self._store = object_store

    async def execute(self, video_id: int) -> None:
        record = self._videos.get(video_id)
        if record is None:
            raise NotFoundError(f"Video {video_id} not found")

        for url in (record.video_url, record.cover_url):
            if not url:
                continue
            key = self._store.key_from_url(url)
            if key is None:
                logger.warning("Cannot derive object key from %s", url)
                continue
            try:
                await self._store.delete_object(key)
                logger.info("Deleted object %s", key)
            except Exception as exc:
                logger.error("Failed to delete object %s: %s", key, exc)

        self._videos.delete(video_id)
