from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional


class UploadState(str, Enum):
    INITIATED = "initiated"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class UploadSession:
    file_key: str
    upload_id: str
    file_name: str
    content_type: str


@dataclass(frozen=True)
class UploadedPart:
    part_number: int
    etag: str
    size: int = 0
    last_modified: Optional[datetime] = None

    @property
    def chunk_index(self) -> int:
        return self.part_number - 1


@dataclass(frozen=True)
class RemoteMultipartUpload:
    key: str
    upload_id: str
    initiated: datetime


@dataclass(frozen=True)
class ResumeState:
    file_key: str
    upload_id: str
    uploaded_chunks: List[int]
    parts: List[UploadedPart] = field(default_factory=list)


@dataclass(frozen=True)
class ChunkReceipt:
    chunk_index: int
    part_number: int
    etag: str
    skipped: bool


@dataclass(frozen=True)
class StagedEntry:
    name: str
    path: Path
    modified_at: datetime


@dataclass(frozen=True)
class SweepReport:
    cleaned: int = 0
    skipped: int = 0
    failed: int = 0


def session_key_for(file_key: str) -> str:
    """Staging directory name for an upload; one directory per object key."""
    return file_key.strip("/").replace("/", "__")
