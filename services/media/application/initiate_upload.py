from __future__ import annotations

import logging

from services.media.application.dto import InitiateUploadCommand
from services.media.application.interfaces import KeyProvider, ObjectStore
from services.media.domain.errors import ValidationError
from services.media.domain.upload import UploadSession

logger = logging.getLogger(__name__)


class InitiateUploadUseCase:
    def __init__(self, *, object_store: ObjectStore, key_provider: KeyProvider) -> None:
        self._store = object_store
        self._keys = key_provider

    async def execute(self, command: InitiateUploadCommand) -> UploadSession:
        if not command.file_name or not command.content_type:
            raise ValidationError("fileName and contentType are required")

        file_key = self._keys.generate(command.file_name)
        upload_id = await self._store.initiate_upload(file_key, command.content_type)
        logger.info("Initiated multipart upload %s for %s", upload_id, file_key)
        return UploadSession(
            file_key=file_key,
            upload_id=upload_id,
            file_name=command.file_name,
            content_type=command.content_type,
        )
