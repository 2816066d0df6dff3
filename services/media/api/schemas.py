from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from services.media.domain.media import Category, MediaPage, MediaRecord
from services.media.domain.upload import ChunkReceipt, ResumeState, UploadedPart, UploadSession


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class InitiateUploadRequest(CamelModel):
    file_name: str | None = None
    content_type: str | None = None


class AbortUploadRequest(CamelModel):
    file_key: str | None = None
    upload_id: str | None = None


class CleanupChunksRequest(CamelModel):
    file_name: str | None = None


class AddCategoryRequest(CamelModel):
    name: str | None = None


class UpdateVideoRequest(CamelModel):
    title: str | None = None
    description: str | None = None
    category_id: int | None = None


class UploadSessionResponse(CamelModel):
    upload_id: str
    file_key: str
    file_name: str

    @classmethod
    def from_domain(cls, session: UploadSession) -> "UploadSessionResponse":
        return cls(
            upload_id=session.upload_id,
            file_key=session.file_key,
            file_name=session.file_name,
        )


class UploadedPartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    part_number: int = Field(alias="PartNumber")
    etag: str = Field(alias="ETag")
    size: int = Field(alias="Size")

    @classmethod
    def from_domain(cls, part: UploadedPart) -> "UploadedPartResponse":
        return cls(part_number=part.part_number, etag=part.etag, size=part.size)


class ResumeStateResponse(CamelModel):
    uploaded_chunks: List[int]
    total_chunks: int
    parts: List[UploadedPartResponse]

    @classmethod
    def from_domain(cls, state: ResumeState) -> "ResumeStateResponse":
        return cls(
            uploaded_chunks=list(state.uploaded_chunks),
            total_chunks=len(state.parts),
            parts=[UploadedPartResponse.from_domain(part) for part in state.parts],
        )


class ChunkReceiptResponse(CamelModel):
    chunk_index: int
    skipped: bool
    etag: str = Field(alias="ETag")
    part_number: int = Field(alias="PartNumber")

    @classmethod
    def from_domain(cls, receipt: ChunkReceipt) -> "ChunkReceiptResponse":
        return cls(
            chunk_index=receipt.chunk_index,
            skipped=receipt.skipped,
            etag=receipt.etag,
            part_number=receipt.part_number,
        )


class CategoryResponse(CamelModel):
    id: int
    name: str

    @classmethod
    def from_domain(cls, category: Category) -> "CategoryResponse":
        return cls(id=category.category_id, name=category.name)


class MediaRecordResponse(CamelModel):
    id: int
    title: str
    description: str | None
    category: str
    category_id: int
    video_url: str
    cover_url: str | None
    created_at: str

    @classmethod
    def from_domain(cls, record: MediaRecord) -> "MediaRecordResponse":
        return cls(
            id=record.video_id,
            title=record.title,
            description=record.description,
            category=record.category,
            category_id=record.category_id,
            video_url=record.video_url,
            cover_url=record.cover_url,
            created_at=record.created_at.isoformat().replace("+00:00", "Z"),
        )


class MediaPageResponse(CamelModel):
    items: List[MediaRecordResponse]
    page: int
    page_size: int
    total: int
    total_pages: int

    @classmethod
    def from_domain(cls, page: MediaPage) -> "MediaPageResponse":
        return cls(
            items=[MediaRecordResponse.from_domain(item) for item in page.items],
            page=page.page,
            page_size=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
        )
