from __future__ import annotations

import asyncio

import pytest

from services.media.application.check_resume_state import CheckResumeStateUseCase
from services.media.application.complete_upload import CompleteUploadUseCase, build_manifest
from services.media.application.dto import (
    CompleteUploadCommand,
    MediaMetadata,
    SubmitChunkCommand,
)
from services.media.application.finalize_media import FinalizeMediaUseCase
from services.media.application.retry import RetryPolicy
from services.media.application.submit_chunk import SubmitChunkUseCase
from services.media.domain.errors import IncompleteUploadError, UpstreamError, ValidationError
from services.media.domain.upload import UploadedPart
from services.media.infrastructure.staging import LocalChunkStaging
from services.media.tests.fakes import (
    FakeFrameExtractor,
    FakeObjectStore,
    InMemoryCategoryRepository,
    InMemoryVideoRepository,
    SequentialKeyProvider,
    no_sleep,
)

KEY = "videos/1700000000000-7.mp4"


class Harness:
    def __init__(self, tmp_path, *, frame_error: Exception | None = None) -> None:
        self.store = FakeObjectStore()
        self.videos = InMemoryVideoRepository()
        self.frames = FakeFrameExtractor(error=frame_error)
        self.staging = LocalChunkStaging(tmp_path / "chunks")
        self.finalizer = FinalizeMediaUseCase(
            object_store=self.store,
            key_provider=SequentialKeyProvider(),
            categories=InMemoryCategoryRepository(["Tutorials"]),
            videos=self.videos,
            frame_extractor=self.frames,
        )

    def submitter(self) -> SubmitChunkUseCase:
        return SubmitChunkUseCase(
            object_store=self.store,
            staging=self.staging,
            retry_policy=RetryPolicy(sleep=no_sleep),
        )

    def completer(self) -> CompleteUploadUseCase:
        return CompleteUploadUseCase(object_store=self.store, finalizer=self.finalizer)

    def submit(self, upload_id: str, index: int, total: int) -> None:
        asyncio.run(
            self.submitter().execute(
                SubmitChunkCommand(
                    chunk_index=index,
                    total_chunks=total,
                    file_key=KEY,
                    upload_id=upload_id,
                    data=f"chunk-{index}".encode(),
                )
            )
        )


def _complete_command(upload_id, total, category_id=1):
    return CompleteUploadCommand(
        file_key=KEY,
        upload_id=upload_id,
        total_chunks=total,
        metadata=MediaMetadata(title="Intro", description="First", category_id=category_id),
    )


def test_out_of_order_chunks_complete_in_part_order(tmp_path):
    harness = Harness(tmp_path)
    upload_id = harness.store.open_upload(KEY)
    for index in (2, 0, 1):
        harness.submit(upload_id, index, 3)

    record = asyncio.run(harness.completer().execute(_complete_command(upload_id, 3)))

    assert harness.store.completed == [(KEY, [1, 2, 3])]
    assert harness.store.objects[KEY] == b"chunk-0chunk-1chunk-2"
    assert record.video_url.endswith(KEY)
    assert record.category == "Tutorials"


def test_missing_part_blocks_completion(tmp_path):
    harness = Harness(tmp_path)
    upload_id = harness.store.open_upload(KEY)
    harness.submit(upload_id, 0, 3)
    harness.submit(upload_id, 2, 3)

    with pytest.raises(IncompleteUploadError) as excinfo:
        asyncio.run(harness.completer().execute(_complete_command(upload_id, 3)))

    assert excinfo.value.uploaded_chunks == [0, 2]
    assert harness.store.completed == []
    assert (KEY, upload_id) in harness.store.uploads


def test_resume_after_restart_matches_uninterrupted_upload(tmp_path):
    uninterrupted = Harness(tmp_path / "a")
    reference_id = uninterrupted.store.open_upload(KEY)
    for index in range(5):
        uninterrupted.submit(reference_id, index, 5)
    asyncio.run(uninterrupted.completer().execute(_complete_command(reference_id, 5)))

    harness = Harness(tmp_path / "b")
    upload_id = harness.store.open_upload(KEY)
    for index in range(3):
        harness.submit(upload_id, index, 5)

    # Nothing survives the restart except the remote part list.
    state = asyncio.run(
        CheckResumeStateUseCase(object_store=harness.store).execute(
            file_key=KEY, upload_id=upload_id
        )
    )
    assert state.uploaded_chunks == [0, 1, 2]

    for index in range(5):
        if index not in state.uploaded_chunks:
            harness.submit(upload_id, index, 5)
    asyncio.run(harness.completer().execute(_complete_command(upload_id, 5)))

    assert harness.store.objects[KEY] == uninterrupted.store.objects[KEY]
    assert len(harness.store.upload_part_calls) == 5


def test_unknown_category_is_rejected_before_listing_parts(tmp_path):
    harness = Harness(tmp_path)
    upload_id = harness.store.open_upload(KEY)
    harness.submit(upload_id, 0, 1)

    with pytest.raises(ValidationError):
        asyncio.run(
            harness.completer().execute(_complete_command(upload_id, 1, category_id=99))
        )
    assert harness.store.completed == []


def test_completion_failure_leaves_session_open(tmp_path):
    harness = Harness(tmp_path)
    upload_id = harness.store.open_upload(KEY)
    harness.submit(upload_id, 0, 1)
    harness.store.complete_error = UpstreamError("InternalError", code="InternalError")

    with pytest.raises(UpstreamError):
        asyncio.run(harness.completer().execute(_complete_command(upload_id, 1)))

    assert harness.store.aborted == []
    assert (KEY, upload_id) in harness.store.uploads
    assert harness.videos.items == {}


def test_cover_extraction_failure_persists_record_without_cover(tmp_path):
    harness = Harness(tmp_path, frame_error=RuntimeError("ffmpeg missing"))
    upload_id = harness.store.open_upload(KEY)
    harness.submit(upload_id, 0, 1)

    record = asyncio.run(harness.completer().execute(_complete_command(upload_id, 1)))

    assert record.cover_url is None
    assert harness.videos.get(record.video_id) == record
    assert "signature=test" in harness.frames.calls[0]["source"]


def test_build_manifest_rejects_duplicates_and_gaps():
    parts = [
        UploadedPart(part_number=1, etag='"a"'),
        UploadedPart(part_number=1, etag='"b"'),
        UploadedPart(part_number=3, etag='"c"'),
    ]

    with pytest.raises(IncompleteUploadError):
        build_manifest(parts, 3)


def test_build_manifest_sorts_by_part_number():
    parts = [UploadedPart(part_number=n, etag=f'"{n}"') for n in (3, 1, 2)]

    manifest = build_manifest(parts, 3)

    assert [part.part_number for part in manifest] == [1, 2, 3]
