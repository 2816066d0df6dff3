from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class Category:
    category_id: int
    name: str


@dataclass(frozen=True)
class MediaRecord:
    video_id: int
    title: str
    description: Optional[str]
    category: str
    category_id: int
    video_url: str
    cover_url: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class NewMediaRecord:
    title: str
    description: Optional[str]
    category: str
    category_id: int
    video_url: str
    cover_url: Optional[str]


@dataclass(frozen=True)
class CoverUpload:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class MediaPage:
    items: List[MediaRecord]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size
