from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from services.media.api.envelope import success
from services.media.api.schemas import (
    AddCategoryRequest,
    CategoryResponse,
    MediaPageResponse,
    MediaRecordResponse,
    UpdateVideoRequest,
)
from services.media.application.catalog import (
    AddCategoryUseCase,
    DeleteCategoryUseCase,
    DeleteVideoUseCase,
    GetVideoUseCase,
    ListCategoriesUseCase,
    ListVideosUseCase,
    UpdateVideoUseCase,
)
from services.media.application.dto import UpdateVideoCommand


def create_catalog_router(
    *,
    list_categories_use_case: ListCategoriesUseCase,
    add_category_use_case: AddCategoryUseCase,
    delete_category_use_case: DeleteCategoryUseCase,
    list_videos_use_case: ListVideosUseCase,
    get_video_use_case: GetVideoUseCase,
    update_video_use_case: UpdateVideoUseCase,
    delete_video_use_case: DeleteVideoUseCase,
) -> APIRouter:
    router = APIRouter(prefix="/api")
    public_router = APIRouter(tags=["catalog"])
    admin_router = APIRouter(prefix="/admin", tags=["admin"])

    @public_router.get("/categories")
    async def list_categories_endpoint():
        categories = list_categories_use_case.execute()
        return success([CategoryResponse.from_domain(c).dump() for c in categories])

    @public_router.get("/videos")
    async def list_videos_endpoint(
        categoryId: Optional[int] = None,
        page: int = Query(1),
        pageSize: int = Query(10),
    ):
        result = list_videos_use_case.execute(
            category_id=categoryId, page=page, page_size=pageSize
        )
        return success(MediaPageResponse.from_domain(result).dump())

    @public_router.get("/videos/{video_id}")
    async def get_video_endpoint(video_id: int):
        record = get_video_use_case.execute(video_id)
        return success(MediaRecordResponse.from_domain(record).dump())

    @admin_router.post("/categories", status_code=201)
    async def add_category_endpoint(payload: AddCategoryRequest):
        category = add_category_use_case.execute(payload.name)
        return success(CategoryResponse.from_domain(category).dump(), "Category added", 201)

    @admin_router.delete("/categories/{category_id}")
    async def delete_category_endpoint(category_id: int):
        delete_category_use_case.execute(category_id)
        return success(None, "Category deleted")

    @admin_router.get("/videos")
    async def admin_list_videos_endpoint(page: int = Query(1), limit: int = Query(10)):
        result = list_videos_use_case.execute(page=page, page_size=limit)
        return success(MediaPageResponse.from_domain(result).dump())

    @admin_router.put("/videos/{video_id}")
    async def update_video_endpoint(video_id: int, payload: UpdateVideoRequest):
        record = update_video_use_case.execute(
            UpdateVideoCommand(
                video_id=video_id,
                title=payload.title,
                description=payload.description,
                category_id=payload.category_id,
            )
        )
        return success(MediaRecordResponse.from_domain(record).dump(), "Video updated")

    @admin_router.delete("/videos/{video_id}")
    async def delete_video_endpoint(video_id: int):
        await delete_video_use_case.execute(video_id)
        return success(None, "Video deleted")

    router.include_router(public_router)
    router.include_router(admin_router)
    return router
