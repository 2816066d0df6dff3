from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, Sequence, TypeVar

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from services.media.config import MediaConfig
from services.media.domain.errors import TransientUpstreamError, UpstreamError
from services.media.domain.upload import RemoteMultipartUpload, UploadedPart

T = TypeVar("T")

_TRANSIENT_BOTO_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)


def create_s3_client(config: MediaConfig):
    return boto3.client(
        "s3",
        endpoint_url=config.storage_endpoint_url,
        region_name=config.storage_region,
        aws_access_key_id=config.storage_access_key,
        aws_secret_access_key=config.storage_secret_key,
        config=BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            connect_timeout=config.storage_connect_timeout_seconds,
            read_timeout=config.storage_read_timeout_seconds,
            retries={
                "max_attempts": config.storage_transport_max_attempts,
                "mode": "standard",
            },
        ),
    )


class S3ObjectStore:
    """Async facade over a blocking boto3 S3 client.

    Every boto3 call runs in a worker thread; failures are translated into
    ``TransientUpstreamError`` or ``UpstreamError``.
    """

    def __init__(
        self,
        client,
        *,
        bucket_name: str,
        public_base_url: str,
        object_acl: str | None = "public-read",
    ) -> None:
        self._client = client
        self._bucket_name = bucket_name
        self._public_base_url = public_base_url.rstrip("/")
        self._acl_args = {"ACL": object_acl} if object_acl else {}

    async def initiate_upload(self, key: str, content_type: str) -> str:
        response = await self._call(
            self._client.create_multipart_upload,
            Bucket=self._bucket_name,
            Key=key,
            ContentType=content_type,
            **self._acl_args,
        )
        return response["UploadId"]

    async def upload_part(
        self, *, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        response = await self._call(
            self._client.upload_part,
            Bucket=self._bucket_name,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return response["ETag"]

    async def complete_upload(
        self, *, key: str, upload_id: str, parts: Sequence[UploadedPart]
    ) -> str | None:
        response = await self._call(
            self._client.complete_multipart_upload,
            Bucket=self._bucket_name,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [
                    {"ETag": part.etag, "PartNumber": part.part_number}
                    for part in parts
                ]
            },
        )
        return response.get("Location")

    async def abort_upload(self, *, key: str, upload_id: str) -> None:
        await self._call(
            self._client.abort_multipart_upload,
            Bucket=self._bucket_name,
            Key=key,
            UploadId=upload_id,
        )

    async def list_parts(self, *, key: str, upload_id: str) -> list[UploadedPart]:
        return await self._call(self._list_parts_sync, key, upload_id)

    async def list_uploads(self, prefix: str) -> list[RemoteMultipartUpload]:
        return await self._call(self._list_uploads_sync, prefix)

    async def put_object(self, key: str, body: bytes, content_type: str) -> None:
        await self._call(
            self._client.put_object,
            Bucket=self._bucket_name,
            Key=key,
            Body=body,
            ContentType=content_type,
            **self._acl_args,
        )

    async def delete_object(self, key: str) -> None:
        await self._call(self._client.delete_object, Bucket=self._bucket_name, Key=key)

    async def list_objects(self, prefix: str = "") -> list[str]:
        return await self._call(self._list_objects_sync, prefix)

    async def presigned_get_url(self, key: str, expires_in_seconds: int) -> str:
        return await self._call(
            self._client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self._bucket_name, "Key": key},
            ExpiresIn=max(expires_in_seconds, 60),
        )

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{key.lstrip('/')}"

    def key_from_url(self, url: str) -> str | None:
        prefix = f"{self._public_base_url}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix) :] or None

    def _list_parts_sync(self, key: str, upload_id: str) -> list[UploadedPart]:
        paginator = self._client.get_paginator("list_parts")
        parts: list[UploadedPart] = []
        for page in paginator.paginate(
            Bucket=self._bucket_name, Key=key, UploadId=upload_id
        ):
            for item in page.get("Parts", []):
                parts.append(
                    UploadedPart(
                        part_number=item["PartNumber"],
                        etag=item["ETag"],
                        size=item.get("Size", 0),
                        last_modified=item.get("LastModified"),
                    )
                )
        return parts

    def _list_uploads_sync(self, prefix: str) -> list[RemoteMultipartUpload]:
        paginator = self._client.get_paginator("list_multipart_uploads")
        uploads: list[RemoteMultipartUpload] = []
        for page in paginator.paginate(Bucket=self._bucket_name, Prefix=prefix):
            for item in page.get("Uploads", []):
                uploads.append(
                    RemoteMultipartUpload(
                        key=item["Key"],
                        upload_id=item["UploadId"],
                        initiated=item["Initiated"],
                    )
                )
        return uploads

    def _list_objects_sync(self, prefix: str) -> list[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        keys: list[str] = []
        for page in paginator.paginate(Bucket=self._bucket_name, Prefix=prefix):
            keys.extend(item["Key"] for item in page.get("Contents", []))
        return keys

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(functools.partial(func, *args, **kwargs))
        except _TRANSIENT_BOTO_ERRORS as exc:
            raise TransientUpstreamError(f"Object store unreachable: {exc}") from exc
        except (ConnectionError, TimeoutError) as exc:
            raise TransientUpstreamError(f"Object store connection failed: {exc}") from exc
        except ClientError as exc:
            error = exc.response.get("Error", {})
            code = str(error.get("Code") or "")
            raise UpstreamError(
                f"Object store rejected request: {error.get('Message') or exc}",
                code=code or None,
            ) from exc
        except BotoCoreError as exc:
            raise UpstreamError(f"Object store request failed: {exc}") from exc


def create_object_store(config: MediaConfig) -> S3ObjectStore:
    return S3ObjectStore(
        create_s3_client(config),
        bucket_name=config.storage_bucket,
        public_base_url=config.storage_public_base_url,
        object_acl=config.storage_object_acl,
    )
