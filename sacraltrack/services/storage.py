"""Object storage backends for track assets."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol
from uuid import uuid4

import httpx
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from sacraltrack.config.settings import StorageConfig, settings
from sacraltrack.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when an asset cannot be persisted to object storage."""


def unique_id() -> str:
    """Generate an identifier accepted by Appwrite (<= 36 chars, alphanumeric)."""

    return uuid4().hex


class ObjectStorage(Protocol):
    """Minimal contract the pipeline needs from a storage backend."""

    async def create_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> Optional[str]:
        """Store ``data`` and return the id assigned by the backend."""

    def file_url(self, bucket_id: str, file_id: str) -> str:
        """Public retrieval URL for a stored file."""


def appwrite_view_url(
    endpoint: str,
    bucket_id: str,
    file_id: str,
    project_id: str | None = None,
) -> str:
    url = f"{endpoint.rstrip('/')}/storage/buckets/{bucket_id}/files/{file_id}/view"
    if project_id:
        url += f"?project={project_id}"
    return url


class AppwriteStorage:
    """Appwrite Storage REST client."""

    def __init__(
        self,
        endpoint: str,
        project_id: str | None,
        api_key: str | None = None,
        *,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._project_id = project_id
        headers = {}
        if project_id:
            headers["X-Appwrite-Project"] = project_id
        if api_key:
            headers["X-Appwrite-Key"] = api_key
        self._client = client or httpx.AsyncClient(headers=headers, timeout=timeout)
        if client is not None:
            self._client.headers.update(headers)

    async def create_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> Optional[str]:
        if not data:
            raise StorageError(f"Refusing to upload empty file {filename}.")

        try:
            response = await self._client.post(
                f"{self._endpoint}/storage/buckets/{bucket_id}/files",
                data={"fileId": file_id},
                files={"file": (filename, data, content_type)},
            )
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise StorageError(
                f"Appwrite rejected {filename} with HTTP {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.RequestError as exc:
            raise StorageError(f"Unable to reach Appwrite storage: {exc}") from exc
        except ValueError as exc:
            raise StorageError(f"Invalid response from Appwrite storage: {exc}") from exc

        assigned_id = payload.get("$id")
        logger.debug("Stored %s in bucket %s as %s", filename, bucket_id, assigned_id)
        return assigned_id

    def file_url(self, bucket_id: str, file_id: str) -> str:
        return appwrite_view_url(self._endpoint, bucket_id, file_id, self._project_id)

    async def aclose(self) -> None:
        await self._client.aclose()


class S3Storage:
    """S3-compatible storage keyed by file id.

    ``public_base_url`` (a CDN or bucket website) is used for retrieval URLs
    when set; otherwise the regional virtual-hosted S3 URL is returned.
    """

    def __init__(
        self,
        region: str,
        public_base_url: str | None = None,
        *,
        client: Any | None = None,
    ) -> None:
        self._region = region
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._client = client or create_boto3_client("s3", region_name=region)

    async def create_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> Optional[str]:
        if not data:
            raise StorageError(f"Refusing to upload empty file {filename}.")

        try:
            await run_in_threadpool(
                self._client.put_object,
                Bucket=bucket_id,
                Key=file_id,
                Body=data,
                ContentType=content_type,
                ContentDisposition=f'inline; filename="{filename}"',
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload {filename} to S3: {exc}") from exc

        logger.debug("Stored %s in bucket %s as %s", filename, bucket_id, file_id)
        return file_id

    def file_url(self, bucket_id: str, file_id: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{file_id}"
        if self._region == "us-east-1":
            return f"https://{bucket_id}.s3.amazonaws.com/{file_id}"
        return f"https://{bucket_id}.s3.{self._region}.amazonaws.com/{file_id}"

    async def aclose(self) -> None:
        return None


def build_storage(config: StorageConfig) -> AppwriteStorage | S3Storage:
    """Instantiate the backend selected by ``config.backend``."""

    if config.backend == "s3":
        return S3Storage(config.region, config.endpoint)

    api_key = config.api_key.get_secret_value() if config.api_key else None
    return AppwriteStorage(
        config.endpoint or "",
        config.project_id,
        api_key,
        timeout=config.timeout,
    )


async def get_storage():
    """FastAPI dependency yielding a storage backend for the request."""

    storage = build_storage(settings.storage)
    try:
        yield storage
    finally:
        await storage.aclose()


__all__ = [
    "AppwriteStorage",
    "ObjectStorage",
    "S3Storage",
    "StorageError",
    "appwrite_view_url",
    "build_storage",
    "get_storage",
    "unique_id",
]
