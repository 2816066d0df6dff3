from __future__ import annotations

import asyncio
import io

import pytest

from services.media.domain.upload import session_key_for
from services.media.infrastructure.staging import LocalChunkStaging, create_staging


def test_stage_read_and_unstage_chunk(tmp_path):
    staging = LocalChunkStaging(tmp_path)
    session = session_key_for("videos/abc.mp4")

    path = asyncio.run(staging.stage(session, 4, b"payload"))

    assert path.parent == tmp_path / "videos__abc.mp4"
    assert path.name.startswith("4.")
    assert path.suffix == ".part"
    assert asyncio.run(staging.read(path)) == b"payload"
    asyncio.run(staging.unstage(path))
    asyncio.run(staging.unstage(path))
    assert not path.exists()
    assert path.parent.is_dir()


def test_restaging_an_index_keeps_copies_apart(tmp_path):
    staging = LocalChunkStaging(tmp_path)

    first = asyncio.run(staging.stage("s1", 0, b"first"))
    second = asyncio.run(staging.stage("s1", 0, b"second"))
    asyncio.run(staging.unstage(first))

    assert first != second
    assert second.read_bytes() == b"second"
    assert [p.name for p in second.parent.iterdir()] == [second.name]


def test_sessions_do_not_share_directories(tmp_path):
    staging = LocalChunkStaging(tmp_path)

    a = asyncio.run(staging.stage(session_key_for("videos/a.mp4"), 0, b"a"))
    b = asyncio.run(staging.stage(session_key_for("videos/b.mp4"), 0, b"b"))

    assert a.parent != b.parent
    assert asyncio.run(staging.remove_session(session_key_for("videos/a.mp4"))) is True
    assert b.exists()


@pytest.mark.parametrize("session_key", ["", ".", ".."])
def test_invalid_session_keys_are_rejected(tmp_path, session_key):
    with pytest.raises(ValueError):
        asyncio.run(LocalChunkStaging(tmp_path).stage(session_key, 0, b"x"))


def test_stage_file_and_list_entries(tmp_path):
    staging = create_staging(tmp_path / "root")

    path = asyncio.run(staging.stage_file("../movie.mp4", io.BytesIO(b"movie")))
    entries = asyncio.run(staging.list_entries())

    assert path.parent == tmp_path / "root"
    assert path.name.endswith("-movie.mp4")
    assert [entry.path for entry in entries] == [path]
    assert entries[0].modified_at.tzinfo is not None


def test_clear_removes_every_entry(tmp_path):
    staging = LocalChunkStaging(tmp_path)
    asyncio.run(staging.stage("s1", 0, b"a"))
    asyncio.run(staging.stage_file("x.mp4", io.BytesIO(b"x")))

    assert asyncio.run(staging.clear()) == 2
    assert asyncio.run(staging.list_entries()) == []
