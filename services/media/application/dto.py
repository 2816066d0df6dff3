from dataclasses import dataclass
from typing import Optional

from services.media.domain.media import CoverUpload


@dataclass(frozen=True)
class InitiateUploadCommand:
    file_name: Optional[str]
    content_type: Optional[str]


@dataclass(frozen=True)
class SubmitChunkCommand:
    chunk_index: Optional[int]
    total_chunks: Optional[int]
    file_key: Optional[str]
    upload_id: Optional[str]
    data: Optional[bytes]


@dataclass(frozen=True)
class MediaMetadata:
    title: Optional[str]
    description: Optional[str]
    category_id: Optional[int]
    cover: Optional[CoverUpload] = None


@dataclass(frozen=True)
class CompleteUploadCommand:
    file_key: Optional[str]
    upload_id: Optional[str]
    total_chunks: Optional[int]
    metadata: MediaMetadata


@dataclass(frozen=True)
class DirectUploadCommand:
    file_name: str
    content_type: str
    metadata: MediaMetadata


@dataclass(frozen=True)
class UpdateVideoCommand:
    video_id: int
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
