from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from services.media.application.interfaces import (
    CategoryRepository,
    TTLCache,
    VideoRepository,
)
from services.media.domain.media import Category, MediaPage, MediaRecord, NewMediaRecord
from services.media.infrastructure.db import Base

_UPDATABLE_FIELDS = {"title", "description", "category", "category_id"}


class CategoryRecord(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)


class VideoRecord(Base):
    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(255), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    video_url = Column(String(1024), nullable=False)
    cover_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


def _to_category(record: CategoryRecord) -> Category:
    return Category(category_id=record.id, name=record.name)


def _to_media(record: VideoRecord) -> MediaRecord:
    return MediaRecord(
        video_id=record.id,
        title=record.title,
        description=record.description,
        category=record.category,
        category_id=record.category_id,
        video_url=record.video_url,
        cover_url=record.cover_url,
        created_at=record.created_at,
    )


class SqlCategoryRepository(CategoryRepository):
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def get(self, category_id: int) -> Category | None:
        with self._session_factory() as db:
            record = db.get(CategoryRecord, category_id)
            return _to_category(record) if record is not None else None

    def list(self) -> list[Category]:
        with self._session_factory() as db:
            records = db.query(CategoryRecord).order_by(CategoryRecord.id.asc()).all()
            return [_to_category(record) for record in records]

    def find_by_name(self, name: str) -> Category | None:
        with self._session_factory() as db:
            record = (
                db.query(CategoryRecord)
                .filter(CategoryRecord.name == name)
                .one_or_none()
            )
            return _to_category(record) if record is not None else None

    def create(self, name: str) -> Category:
        record = CategoryRecord(name=name)
        with self._session_factory() as db:
            db.add(record)
            db.commit()
            return _to_category(record)

    def delete(self, category_id: int) -> bool:
        with self._session_factory() as db:
            record = db.get(CategoryRecord, category_id)
            if record is None:
                return False
            db.delete(record)
            db.commit()
            return True


class CachedCategoryRepository(CategoryRepository):
    """Read-through cache for category lookups; writes invalidate."""

    def __init__(self, inner: CategoryRepository, cache: TTLCache) -> None:
        self._inner = inner
        self._cache = cache

    def _key(self, category_id: int) -> str:
        return f"media:category:{category_id}"

    def get(self, category_id: int) -> Category | None:
        cached = self._cache.get(self._key(category_id))
        if cached is not None:
            return Category(category_id=cached["id"], name=cached["name"])
        category = self._inner.get(category_id)
        if category is not None:
            self._cache.set(
                self._key(category_id),
                {"id": category.category_id, "name": category.name},
            )
        return category

    def list(self) -> list[Category]:
        return self._inner.list()

    def find_by_name(self, name: str) -> Category | None:
        return self._inner.find_by_name(name)

    def create(self, name: str) -> Category:
        return self._inner.create(name)

    def delete(self, category_id: int) -> bool:
        self._cache.delete(self._key(category_id))
        return self._inner.delete(category_id)


class SqlVideoRepository(VideoRepository):
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def create(self, record: NewMediaRecord) -> MediaRecord:
        row = VideoRecord(
            title=record.title,
            description=record.description,
            category=record.category,
            category_id=record.category_id,
            video_url=record.video_url,
            cover_url=record.cover_url,
            created_at=datetime.now(timezone.utc),
        )
        with self._session_factory() as db:
            db.add(row)
            db.commit()
            return _to_media(row)

    def get(self, video_id: int) -> MediaRecord | None:
        with self._session_factory() as db:
            row = db.get(VideoRecord, video_id)
            return _to_media(row) if row is not None else None

    def list(
        self, *, category_id: int | None, page: int, page_size: int
    ) -> MediaPage:
        with self._session_factory() as db:
            query = db.query(VideoRecord)
            count_query = db.query(func.count(VideoRecord.id))
            if category_id is not None:
                query = query.filter(VideoRecord.category_id == category_id)
                count_query = count_query.filter(VideoRecord.category_id == category_id)
            rows = (
                query.order_by(VideoRecord.created_at.desc(), VideoRecord.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return MediaPage(
                items=[_to_media(row) for row in rows],
                page=page,
                page_size=page_size,
                total=count_query.scalar() or 0,
            )

    def update(self, video_id: int, **fields: Any) -> MediaRecord | None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self._session_factory() as db:
            row = db.get(VideoRecord, video_id)
            if row is None:
                return None
            for name, value in fields.items():
                setattr(row, name, value)
            db.commit()
            return _to_media(row)

    def delete(self, video_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(VideoRecord, video_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def exists_for_category(self, category_id: int) -> bool:
        with self._session_factory() as db:
            return (
                db.query(VideoRecord.id)
                .filter(VideoRecord.category_id == category_id)
                .first()
                is not None
            )
