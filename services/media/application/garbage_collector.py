from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Set

from services.media.application.abort_upload import AbortUploadUseCase
from services.media.application.interfaces import ChunkStaging, ObjectStore
from services.media.domain.upload import SweepReport

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GarbageCollector:
    """Reclaims abandoned uploads, both staged chunks and open remote sessions.

    A sweep that is already running is skipped, so a manual trigger never
    overlaps a scheduled run of the same sweep. Errors are logged and never
    escape the scheduler loop.
    """

    def __init__(
        self,
        *,
        staging: ChunkStaging,
        object_store: ObjectStore,
        abort_upload: AbortUploadUseCase,
        object_prefix: str,
        max_age: timedelta = timedelta(hours=2),
        interval: timedelta = timedelta(hours=2),
        initial_delay: timedelta = timedelta(seconds=5),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._staging = staging
        self._store = object_store
        self._abort = abort_upload
        self._prefix = object_prefix.strip("/")
        self._max_age = max_age
        self._interval = interval
        self._initial_delay = initial_delay
        self._clock = clock
        self._running: Set[str] = set()
        self._tasks: List[asyncio.Task] = []

    async def sweep_local(self) -> SweepReport:
        return await self._exclusive("local", self._sweep_local)

    async def sweep_remote(self) -> SweepReport:
        return await self._exclusive("remote", self._sweep_remote)

    async def _exclusive(
        self, name: str, sweep: Callable[[], Awaitable[SweepReport]]
    ) -> SweepReport:
        if name in self._running:
            logger.info("%s sweep already running; skipping", name.capitalize())
            return SweepReport()
        self._running.add(name)
        try:
            return await sweep()
        finally:
            self._running.discard(name)

    async def _sweep_local(self) -> SweepReport:
        cutoff = self._clock() - self._max_age
        cleaned = skipped = failed = 0
        for entry in await self._staging.list_entries():
            if _as_utc(entry.modified_at) >= cutoff:
                skipped += 1
                continue
            try:
                await self._staging.remove_entry(entry)
                cleaned += 1
                logger.info("Removed stale staging entry %s", entry.name)
            except Exception as exc:
                failed += 1
                logger.error(
                    "Failed to remove staging entry %s: %s", entry.name, exc
                )
        report = SweepReport(cleaned=cleaned, skipped=skipped, failed=failed)
        logger.info(
            "Local sweep finished: cleaned=%s skipped=%s failed=%s",
            report.cleaned,
            report.skipped,
            report.failed,
        )
        return report

    async def _sweep_remote(self) -> SweepReport:
        cutoff = self._clock() - self._max_age
        prefix = f"{self._prefix}/" if self._prefix else ""
        cleaned = skipped = failed = 0
        for upload in await self._store.list_uploads(prefix):
            if _as_utc(upload.initiated) >= cutoff:
                skipped += 1
                continue
            try:
                await self._abort.execute(
                    file_key=upload.key, upload_id=upload.upload_id
                )
                cleaned += 1
                logger.info(
                    "Aborted stale upload %s for %s", upload.upload_id, upload.key
                )
            except Exception as exc:
                failed += 1
                logger.error(
                    "Failed to abort upload %s for %s: %s",
                    upload.upload_id,
                    upload.key,
                    exc,
                )
        report = SweepReport(cleaned=cleaned, skipped=skipped, failed=failed)
        logger.info(
            "Remote sweep finished: cleaned=%s skipped=%s failed=%s",
            report.cleaned,
            report.skipped,
            report.failed,
        )
        return report

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run_periodically("local", self.sweep_local)),
            asyncio.create_task(self._run_periodically("remote", self.sweep_remote)),
        ]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_periodically(
        self, name: str, sweep: Callable[[], Awaitable[SweepReport]]
    ) -> None:
        await asyncio.sleep(self._initial_delay.total_seconds())
        while True:
            try:
                await sweep()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Error in %s sweep: %s", name, exc)
            await asyncio.sleep(self._interval.total_seconds())
