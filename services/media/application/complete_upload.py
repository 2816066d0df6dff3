from __future__ import annotations

import logging
from typing import List

from services.media.application.dto import CompleteUploadCommand
from services.media.application.finalize_media import FinalizeMediaUseCase
from services.media.application.interfaces import ObjectStore
from services.media.domain.errors import IncompleteUploadError, ValidationError
from services.media.domain.media import MediaRecord
from services.media.domain.upload import UploadedPart, UploadState

logger = logging.getLogger(__name__)


class CompleteUploadUseCase:
    """Commits a multipart upload once every declared chunk has landed.

    Failures after the manifest is built leave the remote session open so the
    client can retry the merge or abort explicitly.
    """

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        finalizer: FinalizeMediaUseCase,
        frame_url_ttl_seconds: int = 3600,
    ) -> None:
        self._store = object_store
        self._finalizer = finalizer
        self._frame_url_ttl = frame_url_ttl_seconds

    async def execute(self, command: CompleteUploadCommand) -> MediaRecord:
        total_chunks = _validate(command)
        self._finalizer.resolve_category(command.metadata.category_id)

        parts = await self._store.list_parts(
            key=command.file_key, upload_id=command.upload_id
        )
        manifest = build_manifest(parts, total_chunks)

        logger.info(
            "Upload %s for %s is %s with %s parts",
            command.upload_id,
            command.file_key,
            UploadState.COMPLETING.value,
            len(manifest),
        )
        try:
            await self._store.complete_upload(
                key=command.file_key, upload_id=command.upload_id, parts=manifest
            )
        except Exception:
            logger.error(
                "Completion of %s failed; upload %s left open for retry",
                command.file_key,
                command.upload_id,
            )
            raise

        frame_source = await self._store.presigned_get_url(
            command.file_key, self._frame_url_ttl
        )
        record = await self._finalizer.execute(
            video_key=command.file_key,
            frame_source=frame_source,
            metadata=command.metadata,
        )
        logger.info(
            "Upload %s for %s is %s",
            command.upload_id,
            command.file_key,
            UploadState.COMPLETED.value,
        )
        return record


def build_manifest(parts: List[UploadedPart], total_chunks: int) -> List[UploadedPart]:
    """Sort parts and require exactly part numbers 1..total_chunks."""
    ordered = sorted(parts, key=lambda part: part.part_number)
    uploaded = [part.chunk_index for part in ordered]
    if len(ordered) != total_chunks:
        raise IncompleteUploadError(
            f"Expected {total_chunks} parts but {len(ordered)} have been uploaded",
            expected=total_chunks,
            uploaded_chunks=uploaded,
        )
    expected_numbers = list(range(1, total_chunks + 1))
    if [part.part_number for part in ordered] != expected_numbers:
        raise IncompleteUploadError(
            "Uploaded parts contain gaps or duplicates",
            expected=total_chunks,
            uploaded_chunks=uploaded,
        )
    return ordered


def _validate(command: CompleteUploadCommand) -> int:
    missing = [
        name
        for name, value in (
            ("fileKey", command.file_key),
            ("uploadId", command.upload_id),
            ("totalChunks", command.total_chunks),
            ("title", command.metadata.title),
            ("categoryId", command.metadata.category_id),
        )
        if value is None or value == ""
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    total_chunks = int(command.total_chunks)
    if total_chunks < 1:
        raise ValidationError("totalChunks must be at least 1")
    return total_chunks
