# =============================================================================
# Durable Store - MinIO Document Storage
# =============================================================================
# Opaque key -> JSON document store backed by an S3-compatible bucket.
# This is the slow, authoritative tier of the metadata cache.
# =============================================================================

import asyncio
import json
import logging
from io import BytesIO
from typing import Any, Protocol

from minio import Minio
from minio.error import MinioException, S3Error
from urllib3.exceptions import HTTPError

from libs.models import MinIOSettings
from libs.s3_utils import extract_s3_key, parse_s3_path

from .errors import DocumentNotFound, InvalidDocumentError, TransientIOError

__all__ = ["DocumentStore", "MinIODocumentStore"]

logger = logging.getLogger(__name__)

# S3 error codes meaning "never written"
NOT_FOUND_CODES = ("NoSuchKey", "NoSuchBucket")


class DocumentStore(Protocol):
    """
    Async key -> JSON document store.

    ``get_document`` and ``delete_document`` raise ``DocumentNotFound`` for a
    key that was never written and ``TransientIOError`` when the store call
    itself failed, so callers can tell the two apart.
    """

    async def get_document(self, key: str) -> Any:
        ...

    async def put_document(self, key: str, document: Any) -> None:
        ...

    async def list_keys(self, prefix: str) -> list[str]:
        ...

    async def delete_document(self, key: str) -> None:
        ...


class MinIODocumentStore:
    """
    DocumentStore implementation on a single MinIO bucket.

    The MinIO client is blocking, so every call runs in a worker thread via
    ``asyncio.to_thread`` and never stalls the event loop.

    Keys may be plain object keys ("cache/dataset.json") or full S3 paths
    into the same bucket ("s3://asset-metadata/cache/dataset.json").
    """

    def __init__(self, client: Minio, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @classmethod
    def from_settings(cls, settings: MinIOSettings) -> "MinIODocumentStore":
        client = Minio(
            settings.endpoint,
            access_key=settings.access_key,
            secret_key=settings.secret_key,
            secure=settings.use_ssl,
        )
        return cls(client, settings.metadata_bucket)

    @property
    def bucket(self) -> str:
        return self._bucket

    # ------------------------------------------------------------------
    # DocumentStore API
    # ------------------------------------------------------------------

    async def get_document(self, key: str) -> Any:
        """
        Download and parse a JSON document.

        Raises:
            DocumentNotFound: If the key does not exist
            InvalidDocumentError: If the object is not valid JSON
            TransientIOError: If the store call failed
        """
        return await asyncio.to_thread(self._get_document, self._normalize_key(key))

    async def put_document(self, key: str, document: Any) -> None:
        """
        Serialize and upload a JSON document, replacing any existing object.

        Raises:
            TransientIOError: If the store call failed
        """
        await asyncio.to_thread(self._put_document, self._normalize_key(key), document)

    async def list_keys(self, prefix: str) -> list[str]:
        """
        List all object keys under a prefix (recursive).

        A missing bucket lists as empty.

        Raises:
            TransientIOError: If the store call failed
        """
        return await asyncio.to_thread(self._list_keys, prefix)

    async def delete_document(self, key: str) -> None:
        """
        Delete a document.

        Raises:
            DocumentNotFound: If the key does not exist
            TransientIOError: If the store call failed
        """
        await asyncio.to_thread(self._delete_document, self._normalize_key(key))

    async def ensure_bucket(self) -> None:
        """Create the metadata bucket if it does not exist yet."""
        await asyncio.to_thread(self._ensure_bucket)

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _get_document(self, key: str) -> Any:
        try:
            response = self._client.get_object(self._bucket, key)
            try:
                data = response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as exc:
            if exc.code in NOT_FOUND_CODES:
                raise DocumentNotFound(key) from exc
            raise TransientIOError(f"Failed to read '{key}': {exc}") from exc
        except (MinioException, HTTPError) as exc:
            raise TransientIOError(f"Failed to read '{key}': {exc}") from exc

        try:
            return json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidDocumentError(f"Document '{key}' contains invalid JSON: {exc}") from exc

    def _put_document(self, key: str, document: Any) -> None:
        payload = json.dumps(document, indent=2, default=str).encode("utf-8")
        try:
            self._client.put_object(
                self._bucket,
                key,
                BytesIO(payload),
                length=len(payload),
                content_type="application/json",
            )
        except (MinioException, HTTPError) as exc:
            raise TransientIOError(f"Failed to write '{key}': {exc}") from exc

    def _list_keys(self, prefix: str) -> list[str]:
        try:
            objects = self._client.list_objects(
                self._bucket,
                prefix=extract_s3_key(prefix) if prefix else prefix,
                recursive=True,
            )
            return [obj.object_name for obj in objects if not getattr(obj, "is_dir", False)]
        except S3Error as exc:
            if exc.code == "NoSuchBucket":
                return []
            raise TransientIOError(f"Failed to list '{prefix}': {exc}") from exc
        except (MinioException, HTTPError) as exc:
            raise TransientIOError(f"Failed to list '{prefix}': {exc}") from exc

    def _delete_document(self, key: str) -> None:
        try:
            self._client.remove_object(self._bucket, key)
        except S3Error as exc:
            if exc.code in NOT_FOUND_CODES:
                raise DocumentNotFound(key) from exc
            raise TransientIOError(f"Failed to delete '{key}': {exc}") from exc
        except (MinioException, HTTPError) as exc:
            raise TransientIOError(f"Failed to delete '{key}': {exc}") from exc

    def _ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
                logger.info(f"Created metadata bucket '{self._bucket}'")
        except (MinioException, HTTPError) as exc:
            raise TransientIOError(f"Failed to ensure bucket '{self._bucket}': {exc}") from exc

    def _normalize_key(self, key: str) -> str:
        """
        Accept plain keys or s3:// paths into this store's bucket.

        Raises:
            ValueError: If an s3:// path points at another bucket, or the key is empty
        """
        if key.startswith("s3://"):
            bucket, object_key = parse_s3_path(key)
            if bucket != self._bucket:
                raise ValueError(
                    f"S3 path '{key}' is outside the metadata bucket '{self._bucket}'"
                )
            return object_key
        if not key:
            raise ValueError("Document key cannot be empty")
        return key
