from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar
from urllib.parse import quote_plus

from dotenv import load_dotenv

T = TypeVar("T")


def _load_repo_env() -> None:
    """Load the nearest .env starting from this file upward."""
    current = Path(__file__).resolve()
    for candidate in [current.parent, *current.parents]:
        env_file = candidate / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return


_load_repo_env()


def _optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value


def _require_env(name: str) -> str:
    value = _optional_env(name)
    if value is None:
        raise ValueError(f"Environment variable {name} is required")
    return value


def _parse(name: str, raw: str, cast: Callable[[str], T], kind: str) -> T:
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be {kind}") from exc


def _require_env_int(name: str) -> int:
    return _parse(name, _require_env(name), int, "an integer")


def _env_int(name: str, default: int) -> int:
    raw = _optional_env(name)
    return default if raw is None else _parse(name, raw, int, "an integer")


def _env_float(name: str, default: float) -> float:
    raw = _optional_env(name)
    return default if raw is None else _parse(name, raw, float, "a number")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class MediaConfig:
    storage_endpoint_url: str
    storage_region: str
    storage_access_key: str
    storage_secret_key: str
    storage_bucket: str
    storage_public_base_url: str
    storage_object_acl: str | None
    storage_connect_timeout_seconds: int
    storage_read_timeout_seconds: int
    storage_transport_max_attempts: int
    object_prefix: str
    staging_dir: str
    gc_interval_seconds: int
    gc_initial_delay_seconds: int
    gc_max_age_seconds: int
    part_retry_attempts: int
    part_retry_base_delay: float
    part_retry_max_delay: float
    upload_concurrency: int
    direct_part_size_bytes: int
    thumbnail_size: str
    frame_timestamp_seconds: float
    ffmpeg_binary: str
    presigned_url_ttl_seconds: int
    verify_duplicate_checksum: bool
    cache_backend: str
    cache_ttl_seconds: int
    redis_host: str
    redis_port: int
    redis_db: int
    database_url: str | None
    db_host: str | None
    db_port: int | None
    db_name: str | None
    db_user: str | None
    db_password: str | None
    debug: bool
    log_level: str
    http_host: str
    http_port: int

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url
        user = quote_plus(self.db_user or "")
        password = quote_plus(self.db_password or "")
        return (
            f"postgresql://{user}:{password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def sqlalchemy_dsn(self) -> str:
        dsn = self.database_dsn
        if dsn.startswith("postgresql://"):
            return dsn.replace("postgresql://", "postgresql+psycopg://", 1)
        return dsn


def load_config() -> MediaConfig:
    database_url = os.getenv("MEDIA_DATABASE_URL") or None
    if database_url is None:
        db_host = _require_env("MEDIA_DB_HOST")
        db_port = _require_env_int("MEDIA_DB_PORT")
        db_name = _require_env("MEDIA_DB_NAME")
        db_user = _require_env("MEDIA_DB_USER")
        db_password = _require_env("MEDIA_DB_PASSWORD")
    else:
        db_host = db_port = db_name = db_user = db_password = None

    return MediaConfig(
        storage_endpoint_url=_require_env("MEDIA_STORAGE_ENDPOINT_URL"),
        storage_region=os.getenv("MEDIA_STORAGE_REGION", "us-east-1"),
        storage_access_key=_require_env("MEDIA_STORAGE_ACCESS_KEY"),
        storage_secret_key=_require_env("MEDIA_STORAGE_SECRET_KEY"),
        storage_bucket=_require_env("MEDIA_STORAGE_BUCKET"),
        storage_public_base_url=_require_env("MEDIA_STORAGE_PUBLIC_BASE_URL"),
        storage_object_acl=os.getenv("MEDIA_STORAGE_OBJECT_ACL", "public-read") or None,
        storage_connect_timeout_seconds=_env_int(
            "MEDIA_STORAGE_CONNECT_TIMEOUT_SECONDS", 60
        ),
        storage_read_timeout_seconds=_env_int(
            "MEDIA_STORAGE_READ_TIMEOUT_SECONDS", 1800
        ),
        storage_transport_max_attempts=_env_int(
            "MEDIA_STORAGE_TRANSPORT_MAX_ATTEMPTS", 5
        ),
        object_prefix=os.getenv("MEDIA_OBJECT_PREFIX", "videos").strip("/") or "videos",
        staging_dir=os.getenv("MEDIA_STAGING_DIR", "chunks"),
        gc_interval_seconds=_env_int("MEDIA_GC_INTERVAL_SECONDS", 7200),
        gc_initial_delay_seconds=_env_int("MEDIA_GC_INITIAL_DELAY_SECONDS", 5),
        gc_max_age_seconds=_env_int("MEDIA_GC_MAX_AGE_SECONDS", 7200),
        part_retry_attempts=_env_int("MEDIA_PART_RETRY_ATTEMPTS", 4),
        part_retry_base_delay=_env_float("MEDIA_PART_RETRY_BASE_DELAY", 0.5),
        part_retry_max_delay=_env_float("MEDIA_PART_RETRY_MAX_DELAY", 4.0),
        upload_concurrency=_env_int("MEDIA_UPLOAD_CONCURRENCY", 10),
        direct_part_size_bytes=_env_int(
            "MEDIA_DIRECT_PART_SIZE_BYTES", 10 * 1024 * 1024
        ),
        thumbnail_size=os.getenv("MEDIA_THUMBNAIL_SIZE", "320x240"),
        frame_timestamp_seconds=_env_float("MEDIA_FRAME_TIMESTAMP_SECONDS", 1.0),
        ffmpeg_binary=os.getenv("MEDIA_FFMPEG_BINARY", "ffmpeg"),
        presigned_url_ttl_seconds=_env_int("MEDIA_PRESIGNED_URL_TTL_SECONDS", 3600),
        verify_duplicate_checksum=_env_bool("MEDIA_VERIFY_DUPLICATE_CHECKSUM", False),
        cache_backend=os.getenv("MEDIA_CACHE_BACKEND", "memory").strip().lower(),
        cache_ttl_seconds=_env_int("MEDIA_CACHE_TTL_SECONDS", 300),
        redis_host=os.getenv("MEDIA_REDIS_HOST", "localhost"),
        redis_port=_env_int("MEDIA_REDIS_PORT", 6379),
        redis_db=_env_int("MEDIA_REDIS_DB", 0),
        database_url=database_url,
        db_host=db_host,
        db_port=db_port,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        debug=_env_bool("MEDIA_DEBUG", False),
        log_level=os.getenv("MEDIA_LOG_LEVEL", "INFO").upper(),
        http_host=os.getenv("MEDIA_HTTP_HOST", "0.0.0.0"),
        http_port=_env_int("MEDIA_HTTP_PORT", 3000),
    )
