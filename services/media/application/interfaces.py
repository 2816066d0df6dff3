from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Protocol, Sequence

if TYPE_CHECKING:
    from services.media.domain.media import Category, MediaPage, MediaRecord, NewMediaRecord
    from services.media.domain.upload import (
        RemoteMultipartUpload,
        StagedEntry,
        UploadedPart,
    )


class KeyProvider(Protocol):
    def generate(self, filename: str, *, subdir: str | None = None) -> str: ...


class ObjectStore(Protocol):
    async def initiate_upload(self, key: str, content_type: str) -> str: ...

    async def upload_part(
        self, *, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str: ...

    async def complete_upload(
        self, *, key: str, upload_id: str, parts: Sequence["UploadedPart"]
    ) -> str | None: ...

    async def abort_upload(self, *, key: str, upload_id: str) -> None: ...

    async def list_parts(self, *, key: str, upload_id: str) -> list["UploadedPart"]: ...

    async def list_uploads(self, prefix: str) -> list["RemoteMultipartUpload"]: ...

    async def put_object(self, key: str, body: bytes, content_type: str) -> None: ...

    async def delete_object(self, key: str) -> None: ...

    async def presigned_get_url(self, key: str, expires_in_seconds: int) -> str: ...

    def public_url(self, key: str) -> str: ...

    def key_from_url(self, url: str) -> str | None: ...


class ChunkStaging(Protocol):
    async def stage(self, session_key: str, chunk_index: int, data: bytes) -> Path: ...

    async def stage_file(self, name: str, stream: BinaryIO) -> Path: ...

    async def read(self, path: Path) -> bytes: ...

    async def unstage(self, path: Path) -> None: ...

    async def remove_session(self, session_key: str) -> bool: ...

    async def clear(self) -> int: ...

    async def list_entries(self) -> list["StagedEntry"]: ...

    async def remove_entry(self, entry: "StagedEntry") -> None: ...


class FrameExtractor(Protocol):
    def extract(
        self, *, source: str, destination: Path, timestamp_seconds: float, size: str
    ) -> Path: ...


class CategoryRepository(Protocol):
    def get(self, category_id: int) -> "Category" | None: ...

    def list(self) -> list["Category"]: ...

    def create(self, name: str) -> "Category": ...

    def find_by_name(self, name: str) -> "Category" | None: ...

    def delete(self, category_id: int) -> bool: ...


class VideoRepository(Protocol):
    def create(self, record: "NewMediaRecord") -> "MediaRecord": ...

    def get(self, video_id: int) -> "MediaRecord" | None: ...

    def list(
        self, *, category_id: int | None, page: int, page_size: int
    ) -> "MediaPage": ...

    def update(self, video_id: int, **fields: Any) -> "MediaRecord" | None: ...

    def delete(self, video_id: int) -> bool: ...

    def exists_for_category(self, category_id: int) -> bool: ...


class TTLCache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...
