from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from services.media.domain.errors import UpstreamError
from services.media.domain.media import Category, MediaPage, MediaRecord, NewMediaRecord
from services.media.domain.upload import RemoteMultipartUpload, UploadedPart

PUBLIC_BASE = "https://cdn.example.test"


async def no_sleep(delay: float) -> None:
    return None


class FakeObjectStore:
    """In-memory multipart store; the part list is the only session state."""

    def __init__(self) -> None:
        self.uploads: dict[tuple[str, str], dict[str, Any]] = {}
        self.objects: dict[str, bytes] = {}
        self.upload_part_calls: list[tuple[str, int]] = []
        self.completed: list[tuple[str, list[int]]] = []
        self.aborted: list[tuple[str, str]] = []
        self.part_failures: list[Exception] = []
        self.failing_parts: dict[int, Exception] = {}
        self.complete_error: Exception | None = None
        self.abort_error: Exception | None = None
        self._counter = 0

    def open_upload(self, key: str, *, initiated: datetime | None = None) -> str:
        self._counter += 1
        upload_id = f"upload-{self._counter}"
        self.uploads[(key, upload_id)] = {
            "parts": {},
            "bodies": {},
            "initiated": initiated or datetime.now(timezone.utc),
        }
        return upload_id

    def _session(self, key: str, upload_id: str) -> dict[str, Any]:
        session = self.uploads.get((key, upload_id))
        if session is None:
            raise UpstreamError("The specified upload does not exist", code="NoSuchUpload")
        return session

    async def initiate_upload(self, key: str, content_type: str) -> str:
        return self.open_upload(key)

    async def upload_part(
        self, *, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        self.upload_part_calls.append((key, part_number))
        if self.part_failures:
            raise self.part_failures.pop(0)
        if part_number in self.failing_parts:
            raise self.failing_parts[part_number]
        session = self._session(key, upload_id)
        etag = f'"{hashlib.md5(body).hexdigest()}"'
        session["parts"][part_number] = UploadedPart(
            part_number=part_number, etag=etag, size=len(body)
        )
        session["bodies"][part_number] = body
        return etag

    async def complete_upload(self, *, key: str, upload_id: str, parts) -> str | None:
        if self.complete_error is not None:
            raise self.complete_error
        session = self._session(key, upload_id)
        numbers = [part.part_number for part in parts]
        self.objects[key] = b"".join(session["bodies"][number] for number in numbers)
        self.completed.append((key, numbers))
        del self.uploads[(key, upload_id)]
        return f"{PUBLIC_BASE}/{key}"

    async def abort_upload(self, *, key: str, upload_id: str) -> None:
        self.aborted.append((key, upload_id))
        if self.abort_error is not None:
            raise self.abort_error
        self._session(key, upload_id)
        del self.uploads[(key, upload_id)]

    async def list_parts(self, *, key: str, upload_id: str) -> list[UploadedPart]:
        session = self._session(key, upload_id)
        return list(session["parts"].values())

    async def list_uploads(self, prefix: str) -> list[RemoteMultipartUpload]:
        return [
            RemoteMultipartUpload(key=key, upload_id=upload_id, initiated=data["initiated"])
            for (key, upload_id), data in self.uploads.items()
            if key.startswith(prefix)
        ]

    async def put_object(self, key: str, body: bytes, content_type: str) -> None:
        self.objects[key] = body

    async def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)

    async def presigned_get_url(self, key: str, expires_in_seconds: int) -> str:
        return f"{PUBLIC_BASE}/{key}?signature=test&expires={expires_in_seconds}"

    def public_url(self, key: str) -> str:
        return f"{PUBLIC_BASE}/{key}"

    def key_from_url(self, url: str) -> str | None:
        prefix = f"{PUBLIC_BASE}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix) :]


class SequentialKeyProvider:
    def __init__(self, prefix: str = "videos") -> None:
        self._prefix = prefix
        self._counter = 0

    def generate(self, filename: str, *, subdir: str | None = None) -> str:
        self._counter += 1
        extension = Path(filename).suffix.lower()
        parts = [self._prefix, subdir, f"{self._counter}{extension}"]
        return "/".join(part for part in parts if part)


class FakeFrameExtractor:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self._error = error

    def extract(self, *, source: str, destination: Path, timestamp_seconds: float, size: str):
        self.calls.append(
            {"source": source, "timestamp_seconds": timestamp_seconds, "size": size}
        )
        if self._error is not None:
            raise self._error
        destination.write_bytes(b"jpeg-frame")
        return destination


class InMemoryCategoryRepository:
    def __init__(self, names: list[str] | None = None) -> None:
        self._items: dict[int, Category] = {}
        self._next_id = 1
        for name in names or []:
            self.create(name)

    def get(self, category_id: int) -> Category | None:
        return self._items.get(category_id)

    def list(self) -> list[Category]:
        return list(self._items.values())

    def create(self, name: str) -> Category:
        category = Category(category_id=self._next_id, name=name)
        self._items[category.category_id] = category
        self._next_id += 1
        return category

    def find_by_name(self, name: str) -> Category | None:
        return next((c for c in self._items.values() if c.name == name), None)

    def delete(self, category_id: int) -> bool:
        return self._items.pop(category_id, None) is not None


class InMemoryVideoRepository:
    def __init__(self) -> None:
        self.items: dict[int, MediaRecord] = {}
        self._next_id = 1

    def create(self, record: NewMediaRecord) -> MediaRecord:
        media = MediaRecord(
            video_id=self._next_id,
            title=record.title,
            description=record.description,
            category=record.category,
            category_id=record.category_id,
            video_url=record.video_url,
            cover_url=record.cover_url,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        self.items[media.video_id] = media
        self._next_id += 1
        return media

    def get(self, video_id: int) -> MediaRecord | None:
        return self.items.get(video_id)

    def list(self, *, category_id: int | None, page: int, page_size: int) -> MediaPage:
        matching = [
            item
            for item in reversed(list(self.items.values()))
            if category_id is None or item.category_id == category_id
        ]
        start = (page - 1) * page_size
        return MediaPage(
            items=matching[start : start + page_size],
            page=page,
            page_size=page_size,
            total=len(matching),
        )

    def update(self, video_id: int, **fields: Any) -> MediaRecord | None:
        current = self.items.get(video_id)
        if current is None:
            return None
        values = {**current.__dict__, **fields}
        updated = MediaRecord(**values)
        self.items[video_id] = updated
        return updated

    def delete(self, video_id: int) -> bool:
        return self.items.pop(video_id, None) is not None

    def exists_for_category(self, category_id: int) -> bool:
        return any(item.category_id == category_id for item in self.items.values())
