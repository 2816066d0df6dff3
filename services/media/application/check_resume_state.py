from __future__ import annotations

from services.media.application.interfaces import ObjectStore
from services.media.domain.errors import ValidationError
from services.media.domain.upload import ResumeState


class CheckResumeStateUseCase:
    """Reports which chunks already landed remotely so a client can skip them."""

    def __init__(self, *, object_store: ObjectStore) -> None:
        self._store = object_store

    async def execute(self, *, file_key: str | None, upload_id: str | None) -> ResumeState:
        if not file_key or not upload_id:
            raise ValidationError("fileKey and uploadId are required")

        parts = sorted(
            await self._store.list_parts(key=file_key, upload_id=upload_id),
            key=lambda part: part.part_number,
        )
        return ResumeState(
            file_key=file_key,
            upload_id=upload_id,
            uploaded_chunks=[part.chunk_index for part in parts],
            parts=parts,
        )
