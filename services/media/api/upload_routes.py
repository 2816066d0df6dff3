from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile

from services.media.api.envelope import success
from services.media.api.schemas import (
    AbortUploadRequest,
    ChunkReceiptResponse,
    CleanupChunksRequest,
    InitiateUploadRequest,
    MediaRecordResponse,
    ResumeStateResponse,
    UploadSessionResponse,
)
from services.media.application.abort_upload import AbortUploadUseCase
from services.media.application.check_resume_state import CheckResumeStateUseCase
from services.media.application.cleanup_staging import CleanupStagingUseCase
from services.media.application.complete_upload import CompleteUploadUseCase
from services.media.application.direct_upload import DirectUploadUseCase
from services.media.application.dto import (
    CompleteUploadCommand,
    DirectUploadCommand,
    InitiateUploadCommand,
    MediaMetadata,
    SubmitChunkCommand,
)
from services.media.application.initiate_upload import InitiateUploadUseCase
from services.media.application.interfaces import ChunkStaging
from services.media.application.submit_chunk import SubmitChunkUseCase
from services.media.domain.errors import ValidationError
from services.media.domain.media import CoverUpload


async def _read_cover(upload: UploadFile | None) -> CoverUpload | None:
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    if not data:
        return None
    return CoverUpload(
        filename=upload.filename,
        content_type=upload.content_type or "image/jpeg",
        data=data,
    )


def create_upload_router(
    *,
    initiate_upload_use_case: InitiateUploadUseCase,
    check_resume_state_use_case: CheckResumeStateUseCase,
    submit_chunk_use_case: SubmitChunkUseCase,
    complete_upload_use_case: CompleteUploadUseCase,
    abort_upload_use_case: AbortUploadUseCase,
    cleanup_staging_use_case: CleanupStagingUseCase,
    direct_upload_use_case: DirectUploadUseCase,
    staging: ChunkStaging,
) -> APIRouter:
    router = APIRouter(prefix="/api/admin/videos", tags=["uploads"])

    @router.post("/init-upload")
    async def init_upload_endpoint(payload: InitiateUploadRequest):
        session = await initiate_upload_use_case.execute(
            InitiateUploadCommand(
                file_name=payload.file_name, content_type=payload.content_type
            )
        )
        return success(
            UploadSessionResponse.from_domain(session).dump(),
            "Multipart upload initialized",
        )

    @router.get("/chunks-check")
    async def chunks_check_endpoint(
        fileKey: Optional[str] = None, uploadId: Optional[str] = None
    ):
        state = await check_resume_state_use_case.execute(
            file_key=fileKey, upload_id=uploadId
        )
        return success(ResumeStateResponse.from_domain(state).dump())

    @router.post("/chunk")
    async def submit_chunk_endpoint(
        file: Optional[UploadFile] = File(None),
        chunkIndex: Optional[int] = Form(None),
        totalChunks: Optional[int] = Form(None),
        fileKey: Optional[str] = Form(None),
        uploadId: Optional[str] = Form(None),
    ):
        data = await file.read() if file is not None else None
        receipt = await submit_chunk_use_case.execute(
            SubmitChunkCommand(
                chunk_index=chunkIndex,
                total_chunks=totalChunks,
                file_key=fileKey,
                upload_id=uploadId,
                data=data,
            )
        )
        message = "Chunk already uploaded" if receipt.skipped else "Chunk uploaded"
        return success(ChunkReceiptResponse.from_domain(receipt).dump(), message)

    @router.post("/merge", status_code=201)
    async def merge_endpoint(
        fileKey: Optional[str] = Form(None),
        uploadId: Optional[str] = Form(None),
        totalChunks: Optional[int] = Form(None),
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        categoryId: Optional[int] = Form(None),
        file: Optional[UploadFile] = File(None),
    ):
        metadata = MediaMetadata(
            title=title,
            description=description,
            category_id=categoryId,
            cover=await _read_cover(file),
        )
        record = await complete_upload_use_case.execute(
            CompleteUploadCommand(
                file_key=fileKey,
                upload_id=uploadId,
                total_chunks=totalChunks,
                metadata=metadata,
            )
        )
        return success(
            MediaRecordResponse.from_domain(record).dump(), "Video uploaded", 201
        )

    @router.post("/abort")
    async def abort_endpoint(payload: AbortUploadRequest):
        await abort_upload_use_case.execute(
            file_key=payload.file_key, upload_id=payload.upload_id
        )
        return success(None, "Multipart upload aborted")

    @router.post("/cleanup-chunks")
    async def cleanup_chunks_endpoint(payload: Optional[CleanupChunksRequest] = None):
        file_key = payload.file_name if payload is not None else None
        removed = await cleanup_staging_use_case.execute(file_key)
        return success({"removed": removed}, "Staged chunks cleaned")

    @router.post("", status_code=201)
    async def direct_upload_endpoint(
        videoFile: Optional[UploadFile] = File(None),
        coverFile: Optional[UploadFile] = File(None),
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        categoryId: Optional[int] = Form(None),
    ):
        if videoFile is None or not videoFile.filename:
            raise ValidationError("A video file is required")
        metadata = MediaMetadata(
            title=title,
            description=description,
            category_id=categoryId,
            cover=await _read_cover(coverFile),
        )
        source = await staging.stage_file(videoFile.filename, videoFile.file)
        record = await direct_upload_use_case.execute(
            DirectUploadCommand(
                file_name=videoFile.filename,
                content_type=videoFile.content_type or "application/octet-stream",
                metadata=metadata,
            ),
            source,
        )
        return success(
            MediaRecordResponse.from_domain(record).dump(), "Video uploaded", 201
        )

    return router
