from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from services.media.api.catalog_routes import create_catalog_router
from services.media.api.envelope import install_error_handlers
from services.media.api.upload_routes import create_upload_router
from services.media.application.abort_upload import AbortUploadUseCase
from services.media.application.catalog import (
    AddCategoryUseCase,
    DeleteCategoryUseCase,
    DeleteVideoUseCase,
    GetVideoUseCase,
    ListCategoriesUseCase,
    ListVideosUseCase,
    UpdateVideoUseCase,
)
from services.media.application.check_resume_state import CheckResumeStateUseCase
from services.media.application.cleanup_staging import CleanupStagingUseCase
from services.media.application.complete_upload import CompleteUploadUseCase
from services.media.application.direct_upload import DirectUploadUseCase
from services.media.application.finalize_media import FinalizeMediaUseCase
from services.media.application.garbage_collector import GarbageCollector
from services.media.application.initiate_upload import InitiateUploadUseCase
from services.media.application.interfaces import ChunkStaging
from services.media.application.retry import RetryPolicy
from services.media.application.submit_chunk import SubmitChunkUseCase
from services.media.config import MediaConfig, load_config
from services.media.infrastructure.cache import create_cache
from services.media.infrastructure.catalog import (
    CachedCategoryRepository,
    SqlCategoryRepository,
    SqlVideoRepository,
)
from services.media.infrastructure.db import create_session_factory
from services.media.infrastructure.frames import create_frame_extractor
from services.media.infrastructure.ids import TimestampKeyProvider
from services.media.infrastructure.s3_object_store import create_object_store
from services.media.infrastructure.staging import create_staging

logger = logging.getLogger(__name__)


@dataclass
class MediaContainer:
    staging: ChunkStaging
    initiate_upload: InitiateUploadUseCase
    check_resume_state: CheckResumeStateUseCase
    submit_chunk: SubmitChunkUseCase
    complete_upload: CompleteUploadUseCase
    abort_upload: AbortUploadUseCase
    cleanup_staging: CleanupStagingUseCase
    direct_upload: DirectUploadUseCase
    list_categories: ListCategoriesUseCase
    add_category: AddCategoryUseCase
    delete_category: DeleteCategoryUseCase
    list_videos: ListVideosUseCase
    get_video: GetVideoUseCase
    update_video: UpdateVideoUseCase
    delete_video: DeleteVideoUseCase
    garbage_collector: GarbageCollector | None = None
    debug: bool = False


def build_container(cfg: MediaConfig) -> MediaContainer:
    object_store = create_object_store(cfg)
    staging = create_staging(cfg.staging_dir)
    key_provider = TimestampKeyProvider(cfg.object_prefix)
    retry_policy = RetryPolicy(
        max_attempts=cfg.part_retry_attempts,
        base_delay=cfg.part_retry_base_delay,
        max_delay=cfg.part_retry_max_delay,
    )

    orm_session_factory = create_session_factory(cfg.sqlalchemy_dsn)
    categories = CachedCategoryRepository(
        SqlCategoryRepository(orm_session_factory), create_cache(cfg)
    )
    videos = SqlVideoRepository(orm_session_factory)

    finalizer = FinalizeMediaUseCase(
        object_store=object_store,
        key_provider=key_provider,
        categories=categories,
        videos=videos,
        frame_extractor=create_frame_extractor(cfg),
        thumbnail_size=cfg.thumbnail_size,
        frame_timestamp_seconds=cfg.frame_timestamp_seconds,
    )
    abort_upload = AbortUploadUseCase(object_store=object_store, staging=staging)
    garbage_collector = GarbageCollector(
        staging=staging,
        object_store=object_store,
        abort_upload=abort_upload,
        object_prefix=cfg.object_prefix,
        max_age=timedelta(seconds=cfg.gc_max_age_seconds),
        interval=timedelta(seconds=cfg.gc_interval_seconds),
        initial_delay=timedelta(seconds=cfg.gc_initial_delay_seconds),
    )

    return MediaContainer(
        staging=staging,
        initiate_upload=InitiateUploadUseCase(
            object_store=object_store, key_provider=key_provider
        ),
        check_resume_state=CheckResumeStateUseCase(object_store=object_store),
        submit_chunk=SubmitChunkUseCase(
            object_store=object_store,
            staging=staging,
            retry_policy=retry_policy,
            verify_duplicate_checksum=cfg.verify_duplicate_checksum,
        ),
        complete_upload=CompleteUploadUseCase(
            object_store=object_store,
            finalizer=finalizer,
            frame_url_ttl_seconds=cfg.presigned_url_ttl_seconds,
        ),
        abort_upload=abort_upload,
        cleanup_staging=CleanupStagingUseCase(staging=staging),
        direct_upload=DirectUploadUseCase(
            object_store=object_store,
            staging=staging,
            key_provider=key_provider,
            finalizer=finalizer,
            retry_policy=retry_policy,
            part_size_bytes=cfg.direct_part_size_bytes,
            max_concurrency=cfg.upload_concurrency,
        ),
        list_categories=ListCategoriesUseCase(categories),
        add_category=AddCategoryUseCase(categories),
        delete_category=DeleteCategoryUseCase(categories=categories, videos=videos),
        list_videos=ListVideosUseCase(videos),
        get_video=GetVideoUseCase(videos),
        update_video=UpdateVideoUseCase(categories=categories, videos=videos),
        delete_video=DeleteVideoUseCase(videos=videos, object_store=object_store),
        garbage_collector=garbage_collector,
        debug=cfg.debug,
    )


def build_app(
    config: MediaConfig | None = None, *, container: MediaContainer | None = None
) -> FastAPI:
    if container is None:
        cfg = config or load_config()
        logging.basicConfig(
            level=getattr(logging, cfg.log_level, logging.INFO),
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        container = build_container(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container.garbage_collector is not None:
            container.garbage_collector.start()
            logger.info("Upload garbage collector started")
        yield
        if container.garbage_collector is not None:
            await container.garbage_collector.stop()
            logger.info("Upload garbage collector stopped")

    app = FastAPI(title="Media Upload Service", lifespan=lifespan)
    install_error_handlers(app, debug=container.debug)

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    app.include_router(
        create_upload_router(
            initiate_upload_use_case=container.initiate_upload,
            check_resume_state_use_case=container.check_resume_state,
            submit_chunk_use_case=container.submit_chunk,
            complete_upload_use_case=container.complete_upload,
            abort_upload_use_case=container.abort_upload,
            cleanup_staging_use_case=container.cleanup_staging,
            direct_upload_use_case=container.direct_upload,
            staging=container.staging,
        )
    )
    app.include_router(
        create_catalog_router(
            list_categories_use_case=container.list_categories,
            add_category_use_case=container.add_category,
            delete_category_use_case=container.delete_category,
            list_videos_use_case=container.list_videos,
            get_video_use_case=container.get_video,
            update_video_use_case=container.update_video,
            delete_video_use_case=container.delete_video,
        )
    )

    return app


if __name__ == "__main__":
    cfg = load_config()
    uvicorn.run(build_app(cfg), host=cfg.http_host, port=cfg.http_port)
