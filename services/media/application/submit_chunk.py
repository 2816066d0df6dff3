from __future__ import annotations

import hashlib
import logging

from services.media.application.dto import SubmitChunkCommand
from services.media.application.interfaces import ChunkStaging, ObjectStore
from services.media.application.retry import RetryPolicy
from services.media.domain.errors import ValidationError
from services.media.domain.upload import ChunkReceipt, UploadedPart, session_key_for

logger = logging.getLogger(__name__)


class SubmitChunkUseCase:
    """Forwards one client chunk as a multipart part, at most once per part number.

    The remote part list is queried before every forward, so concurrent or
    retried submissions for a landed part are skipped without local state.
    """

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        staging: ChunkStaging,
        retry_policy: RetryPolicy | None = None,
        verify_duplicate_checksum: bool = False,
    ) -> None:
        self._store = object_store
        self._staging = staging
        self._retry = retry_policy or RetryPolicy()
        self._verify_checksum = verify_duplicate_checksum

    async def execute(self, command: SubmitChunkCommand) -> ChunkReceipt:
        _validate(command)
        chunk_index = int(command.chunk_index)
        part_number = chunk_index + 1
        file_key = command.file_key
        upload_id = command.upload_id

        staged = await self._staging.stage(
            session_key_for(file_key), chunk_index, command.data
        )
        try:
            existing = await self._find_part(file_key, upload_id, part_number)
            if existing is not None and self._is_same_content(existing, command.data):
                logger.info(
                    "Part %s of %s already uploaded; skipping", part_number, file_key
                )
                return ChunkReceipt(
                    chunk_index=chunk_index,
                    part_number=part_number,
                    etag=existing.etag,
                    skipped=True,
                )

            body = await self._staging.read(staged)
            etag = await self._retry.run(
                lambda: self._store.upload_part(
                    key=file_key,
                    upload_id=upload_id,
                    part_number=part_number,
                    body=body,
                ),
                description=f"upload of part {part_number} for {file_key}",
            )
            logger.info(
                "Uploaded part %s/%s of %s", part_number, command.total_chunks, file_key
            )
            return ChunkReceipt(
                chunk_index=chunk_index,
                part_number=part_number,
                etag=etag,
                skipped=False,
            )
        finally:
            await self._staging.unstage(staged)

    async def _find_part(
        self, file_key: str, upload_id: str, part_number: int
    ) -> UploadedPart | None:
        parts = await self._store.list_parts(key=file_key, upload_id=upload_id)
        for part in parts:
            if part.part_number == part_number:
                return part
        return None

    def _is_same_content(self, existing: UploadedPart, data: bytes) -> bool:
        if not self._verify_checksum:
            return True
        digest = hashlib.md5(data).hexdigest()
        if existing.etag.strip('"') == digest:
            return True
        logger.warning(
            "Part %s content differs from the landed copy; re-uploading",
            existing.part_number,
        )
        return False


def _validate(command: SubmitChunkCommand) -> None:
    missing = [
        name
        for name, value in (
            ("chunkIndex", command.chunk_index),
            ("totalChunks", command.total_chunks),
            ("fileKey", command.file_key),
            ("uploadId", command.upload_id),
            ("file", command.data),
        )
        if value is None or value in ("", b"")
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if command.chunk_index < 0:
        raise ValidationError("chunkIndex must not be negative")
    if command.total_chunks < 1:
        raise ValidationError("totalChunks must be at least 1")
    if command.chunk_index >= command.total_chunks:
        raise ValidationError(
            f"chunkIndex {command.chunk_index} is out of range for "
            f"{command.total_chunks} chunks"
        )
