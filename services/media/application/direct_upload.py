from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List

from services.media.application.dto import DirectUploadCommand
from services.media.application.finalize_media import FinalizeMediaUseCase
from services.media.application.interfaces import ChunkStaging, KeyProvider, ObjectStore
from services.media.application.retry import RetryPolicy
from services.media.domain.errors import UpstreamError, ValidationError
from services.media.domain.media import MediaRecord
from services.media.domain.upload import UploadedPart

logger = logging.getLogger(__name__)

MIN_PART_SIZE_BYTES = 5 * 1024 * 1024


class DirectUploadUseCase:
    """Uploads a whole staged file through multipart with bounded fan-out."""

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        staging: ChunkStaging,
        key_provider: KeyProvider,
        finalizer: FinalizeMediaUseCase,
        retry_policy: RetryPolicy | None = None,
        part_size_bytes: int = 10 * 1024 * 1024,
        max_concurrency: int = 10,
    ) -> None:
        self._store = object_store
        self._staging = staging
        self._keys = key_provider
        self._finalizer = finalizer
        self._retry = retry_policy or RetryPolicy()
        self._part_size = max(part_size_bytes, MIN_PART_SIZE_BYTES)
        self._max_concurrency = max(1, max_concurrency)

    async def execute(self, command: DirectUploadCommand, source: Path) -> MediaRecord:
        try:
            if not command.file_name:
                raise ValidationError("A video file is required")
            if not command.metadata.title:
                raise ValidationError("title is required")
            self._finalizer.resolve_category(command.metadata.category_id)

            file_key = self._keys.generate(command.file_name)
            await self.upload_file(file_key, source, command.content_type)
            return await self._finalizer.execute(
                video_key=file_key,
                frame_source=source.as_posix(),
                metadata=command.metadata,
            )
        finally:
            await self._staging.unstage(source)

    async def upload_file(self, file_key: str, source: Path, content_type: str) -> None:
        size = source.stat().st_size
        part_count = max(1, -(-size // self._part_size))
        upload_id = await self._store.initiate_upload(file_key, content_type)
        logger.info(
            "Uploading %s (%s bytes) as %s parts under upload %s",
            file_key,
            size,
            part_count,
            upload_id,
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)
        halted = asyncio.Event()

        async def upload_one(part_number: int) -> UploadedPart:
            async with semaphore:
                # Parts still queued behind the semaphore never start after a failure.
                if halted.is_set():
                    raise asyncio.CancelledError()
                try:
                    offset = (part_number - 1) * self._part_size
                    body = await asyncio.to_thread(
                        _read_range, source, offset, self._part_size
                    )
                    etag = await self._retry.run(
                        lambda: self._store.upload_part(
                            key=file_key,
                            upload_id=upload_id,
                            part_number=part_number,
                            body=body,
                        ),
                        description=f"upload of part {part_number} for {file_key}",
                    )
                except Exception:
                    halted.set()
                    raise
                return UploadedPart(part_number=part_number, etag=etag, size=len(body))

        tasks = [
            asyncio.create_task(upload_one(part_number))
            for part_number in range(1, part_count + 1)
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        failure = next(
            (
                task.exception()
                for task in done
                if not task.cancelled() and task.exception() is not None
            ),
            None,
        )
        if failure is not None:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            await self._abort_quietly(file_key, upload_id)
            raise failure

        parts: List[UploadedPart] = sorted(
            (task.result() for task in done), key=lambda part: part.part_number
        )
        try:
            await self._store.complete_upload(
                key=file_key, upload_id=upload_id, parts=parts
            )
        except UpstreamError:
            await self._abort_quietly(file_key, upload_id)
            raise

    async def _abort_quietly(self, file_key: str, upload_id: str) -> None:
        try:
            await self._store.abort_upload(key=file_key, upload_id=upload_id)
            logger.warning("Aborted upload %s for %s", upload_id, file_key)
        except Exception as exc:
            logger.error(
                "Failed to abort upload %s for %s: %s", upload_id, file_key, exc
            )


def _read_range(path: Path, offset: int, length: int) -> bytes:
    with path.open("rb") as file_obj:
        file_obj.seek(offset)
        return file_obj.read(length)
