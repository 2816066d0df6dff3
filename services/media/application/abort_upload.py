from __future__ import annotations

import logging

from services.media.application.interfaces import ChunkStaging, ObjectStore
from services.media.domain.errors import UpstreamError, ValidationError
from services.media.domain.upload import UploadState, session_key_for

logger = logging.getLogger(__name__)

_GONE_CODES = {"NoSuchUpload", "NoSuchKey", "404"}


class AbortUploadUseCase:
    def __init__(
        self, *, object_store: ObjectStore, staging: ChunkStaging | None = None
    ) -> None:
        self._store = object_store
        self._staging = staging

    async def execute(self, *, file_key: str | None, upload_id: str | None) -> None:
        if not file_key or not upload_id:
            raise ValidationError("fileKey and uploadId are required")

        try:
            await self._store.abort_upload(key=file_key, upload_id=upload_id)
        except UpstreamError as exc:
            if exc.code not in _GONE_CODES:
                raise
            logger.info(
                "Multipart upload %s for %s already gone: %s", upload_id, file_key, exc
            )
        else:
            logger.info(
                "Upload %s for %s is %s", upload_id, file_key, UploadState.ABORTED.value
            )

        if self._staging is not None:
            await self._staging.remove_session(session_key_for(file_key))
