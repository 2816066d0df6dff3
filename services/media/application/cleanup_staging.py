from __future__ import annotations

import logging

from services.media.application.interfaces import ChunkStaging
from services.media.domain.upload import session_key_for

logger = logging.getLogger(__name__)


class CleanupStagingUseCase:
    """Manual removal of staged chunks for one upload, or of everything staged."""

    def __init__(self, *, staging: ChunkStaging) -> None:
        self._staging = staging

    async def execute(self, file_key: str | None = None) -> int:
        if file_key:
            removed = await self._staging.remove_session(session_key_for(file_key))
            logger.info("Cleaned staged chunks for %s: %s", file_key, removed)
            return 1 if removed else 0

        count = await self._staging.clear()
        logger.info("Cleaned %s staging entries", count)
        return count
