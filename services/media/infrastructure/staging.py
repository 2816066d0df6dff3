from __future__ import annotations

import asyncio
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from services.media.domain.upload import StagedEntry

_COPY_BUFFER_BYTES = 1024 * 1024


class LocalChunkStaging:
    """Transient on-disk buffer for chunks between receipt and forwarding.

    Layout is ``<root>/<session_key>/<chunk_index>.<token>.part`` with a fresh
    token per request, so concurrent submissions of one index never share a
    file. Single-file buffers live directly under the root. Writes go to a
    temporary name and are renamed into place, so a crash leaves an orphan or
    nothing. Orphans are reclaimed by the garbage collector.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    async def stage(self, session_key: str, chunk_index: int, data: bytes) -> Path:
        return await asyncio.to_thread(self._stage_sync, session_key, chunk_index, data)

    async def stage_file(self, name: str, stream: BinaryIO) -> Path:
        return await asyncio.to_thread(self._stage_file_sync, name, stream)

    async def read(self, path: Path) -> bytes:
        return await asyncio.to_thread(Path(path).read_bytes)

    async def unstage(self, path: Path) -> None:
        await asyncio.to_thread(self._unstage_sync, Path(path))

    async def remove_session(self, session_key: str) -> bool:
        return await asyncio.to_thread(self._remove_sync, self._session_dir(session_key))

    async def clear(self) -> int:
        entries = await self.list_entries()
        for entry in entries:
            await self.remove_entry(entry)
        return len(entries)

    async def list_entries(self) -> list[StagedEntry]:
        return await asyncio.to_thread(self._list_sync)

    async def remove_entry(self, entry: StagedEntry) -> None:
        await asyncio.to_thread(self._remove_sync, entry.path)

    def _session_dir(self, session_key: str) -> Path:
        name = Path(session_key).name
        if not name or name in {".", ".."}:
            raise ValueError(f"Invalid staging session key: {session_key!r}")
        return self._root / name

    def _stage_sync(self, session_key: str, chunk_index: int, data: bytes) -> Path:
        session_dir = self._session_dir(session_key)
        session_dir.mkdir(parents=True, exist_ok=True)
        destination = session_dir / f"{int(chunk_index)}.{uuid.uuid4().hex}.part"
        tmp_path = session_dir / f".{destination.name}.tmp"
        tmp_path.write_bytes(data)
        os.replace(tmp_path, destination)
        return destination

    def _stage_file_sync(self, name: str, stream: BinaryIO) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        safe_name = Path(name or "").name or "upload.bin"
        destination = self._root / f"{uuid.uuid4().hex}-{safe_name}"
        tmp_path = self._root / f".{destination.name}.tmp"
        with tmp_path.open("wb") as dest:
            shutil.copyfileobj(stream, dest, _COPY_BUFFER_BYTES)
        os.replace(tmp_path, destination)
        return destination

    def _unstage_sync(self, path: Path) -> None:
        # The session directory stays; concurrent chunks may still be landing in it.
        path.unlink(missing_ok=True)

    def _remove_sync(self, path: Path) -> bool:
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
            return True
        if path.exists():
            path.unlink(missing_ok=True)
            return True
        return False

    def _list_sync(self) -> list[StagedEntry]:
        if not self._root.is_dir():
            return []
        entries = []
        for path in sorted(self._root.iterdir()):
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            entries.append(
                StagedEntry(
                    name=path.name,
                    path=path,
                    modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                )
            )
        return entries


def create_staging(root: str | Path) -> LocalChunkStaging:
    path = Path(root)
    path.mkdir(parents=True, exist_ok=True)
    return LocalChunkStaging(path)
