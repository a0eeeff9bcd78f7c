"""
Storage Abstraction Layer - The Bridge Pattern

Provides a clean interface for object-store operations with S3Storage
(production) and LocalStorage (development and tests). Buckets are resolved
per request from the destination locator; the client itself is created once
per process and is safe for concurrent use.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from src.core.config import settings
from src.core.exceptions import StorageConnectionError, StorageLookupError, UploadError
from src.core.logging import get_logger

logger = get_logger(__name__)

WEBP_CONTENT_TYPE = "image/webp"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_NO_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


class IStorage(ABC):
    """Interface for storage operations - The Bridge"""

    @abstractmethod
    async def connect(self, bucket: str) -> None:
        """
        Verify the bucket is reachable with the configured credentials.

        Raises:
            StorageConnectionError: If the bucket is missing or access fails
        """
        pass

    @abstractmethod
    async def exists(self, bucket: str, key: str) -> bool:
        """
        Check if an object exists.

        Returns:
            True if found, False if the store reports it absent

        Raises:
            StorageLookupError: If the store gives any other answer
        """
        pass

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = WEBP_CONTENT_TYPE
    ) -> str:
        """
        Upload bytes under bucket/key and return the public URL.

        Raises:
            UploadError: If the write is rejected or the transport fails
        """
        pass

    @abstractmethod
    def get_url(self, bucket: str, key: str) -> str:
        """Canonical public URL of an object."""
        pass


class LocalStorage(IStorage):
    """Local filesystem storage implementation for development."""

    def __init__(self, base_path: str = "./data/storage"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, bucket: str, key: str = "") -> Optional[Path]:
        """Resolved path under base_path, or None when it would land outside."""
        path = (self.base_path / bucket / key).resolve()
        if path == self.base_path or self.base_path not in path.parents:
            return None
        return path

    async def connect(self, bucket: str) -> None:
        bucket_path = self._path_for(bucket)
        if bucket_path is None:
            raise StorageConnectionError(
                f"Local bucket folder {bucket!r} is outside the storage root",
                bucket=bucket
            )
        try:
            bucket_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageConnectionError(
                f"Unable to open local bucket folder: {bucket}\n\n{e}",
                bucket=bucket
            )

    async def exists(self, bucket: str, key: str) -> bool:
        path = self._path_for(bucket, key)
        if path is None:
            raise StorageLookupError(f"{key} is outside the storage root", key=key)
        return path.is_file()

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = WEBP_CONTENT_TYPE
    ) -> str:
        file_path = self._path_for(bucket, key)
        if file_path is None:
            raise UploadError(f"{key} was unable to be written: outside the storage root", key=key)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise UploadError(f"{key} was unable to be written: {e}", key=key)

        return self.get_url(bucket, key)

    def get_url(self, bucket: str, key: str) -> str:
        """For local storage, return a relative path that can be served."""
        return f"/static/storage/{bucket}/{key}"


class S3Storage(IStorage):
    """Amazon S3 storage implementation for production."""

    def __init__(
        self,
        access_key: Optional[str],
        secret_key: Optional[str],
        region: str = "ap-southeast-2",
        timeout: float = 30.0,
        client=None
    ):
        self.region = region
        self._has_credentials = bool(access_key and secret_key)
        # Single attempt per call, retries are not wanted anywhere in the pipeline
        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=BotoConfig(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 1, "mode": "standard"}
            )
        )

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return str(error.response.get("Error", {}).get("Code", ""))

    def _credentials_message(self, cause: object) -> str:
        return (
            "Unable to connect to S3. Check the application settings were set:\n"
            "AWS_ACCESS_KEY: <your aws access key>\n"
            "AWS_SECRET_KEY: <your aws secret key>\n\n"
            f"{cause}"
        )

    async def connect(self, bucket: str) -> None:
        if not self._has_credentials:
            raise StorageConnectionError(
                self._credentials_message("Credentials are missing."),
                bucket=bucket
            )

        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=bucket)
        except ClientError as e:
            if self._error_code(e) in _NO_BUCKET_CODES:
                raise StorageConnectionError(
                    f"Unable to connect to S3. The bucket: {bucket} does not exist "
                    "and needs to be manually created.",
                    bucket=bucket
                )
            raise StorageConnectionError(self._credentials_message(e), bucket=bucket)
        except BotoCoreError as e:
            raise StorageConnectionError(self._credentials_message(e), bucket=bucket)

        logger.debug("s3_bucket_reachable", bucket=bucket)

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                return False
            raise StorageLookupError(f"S3 lookup for {key} failed: {e}", key=key)
        except BotoCoreError as e:
            raise StorageLookupError(f"S3 lookup for {key} failed: {e}", key=key)

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = WEBP_CONTENT_TYPE
    ) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.put_object,
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("s3_upload_failed", key=key, error=str(e))
            raise UploadError(f"S3 Exception: {e}", key=key)

        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status is None or not 200 <= status < 300:
            logger.error("s3_upload_rejected", key=key, http_status=status)
            raise UploadError(f"{key} was unable to be uploaded to S3 (HTTP {status})", key=key)

        return self.get_url(bucket, key)

    def get_url(self, bucket: str, key: str) -> str:
        """Virtual-hosted style URL."""
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"


class StorageFactory:
    """
    Factory for creating storage instances.

    STORAGE_BACKEND=s3 selects S3Storage with credentials from settings,
    anything else keeps the local filesystem backend.
    """

    _instance: Optional[IStorage] = None

    @classmethod
    def get_storage(cls) -> IStorage:
        """Get the appropriate storage implementation based on environment."""
        if cls._instance is None:
            if settings.STORAGE_BACKEND.lower() == "s3":
                cls._instance = S3Storage(
                    access_key=settings.AWS_ACCESS_KEY,
                    secret_key=settings.AWS_SECRET_KEY,
                    region=settings.AWS_REGION,
                    timeout=settings.STORAGE_TIMEOUT_SECONDS
                )
            else:
                cls._instance = LocalStorage(base_path=settings.LOCAL_STORAGE_PATH)

            logger.info("storage_initialized", backend=type(cls._instance).__name__)

        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None


# Convenience function for dependency injection
def get_storage() -> IStorage:
    """Get the storage instance - ready for FastAPI Depends()."""
    return StorageFactory.get_storage()
