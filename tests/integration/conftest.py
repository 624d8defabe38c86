"""Minimal integration test fixtures - wiring only.

Integration tests expect a running MinIO (see docker-compose / .env).
Every test works under its own cache prefix and removes it afterwards.
"""

from __future__ import annotations

import os
import time
import uuid
from typing import Generator

import pytest
from minio import Minio

from libs.models import CacheSettings
from services.cache import MinIODocumentStore


@pytest.fixture
def minio_endpoint() -> str:
    return os.getenv("MINIO_ENDPOINT", "localhost:9000")


@pytest.fixture
def minio_access_key() -> str:
    return os.getenv("MINIO_ROOT_USER", "minioadmin")


@pytest.fixture
def minio_secret_key() -> str:
    return os.getenv("MINIO_ROOT_PASSWORD", "minioadmin")


@pytest.fixture
def minio_use_ssl() -> bool:
    return os.getenv("MINIO_USE_SSL", "false").lower() == "true"


@pytest.fixture
def minio_metadata_bucket() -> str:
    return os.getenv("MINIO_METADATA_BUCKET", "asset-metadata")


@pytest.fixture
def minio_client(
    minio_endpoint: str,
    minio_access_key: str,
    minio_secret_key: str,
    minio_use_ssl: bool,
    minio_metadata_bucket: str,
) -> Minio:
    client = Minio(
        minio_endpoint,
        access_key=minio_access_key,
        secret_key=minio_secret_key,
        secure=minio_use_ssl,
    )

    deadline = time.time() + 30
    while time.time() < deadline:
        try:
            client.list_buckets()
            break
        except Exception:
            time.sleep(1)
    else:
        raise RuntimeError("MinIO did not become ready within timeout")

    if not client.bucket_exists(minio_metadata_bucket):
        client.make_bucket(minio_metadata_bucket)

    return client


@pytest.fixture
def integration_prefix(
    minio_client: Minio, minio_metadata_bucket: str
) -> Generator[str, None, None]:
    prefix = f"integration-test/{uuid.uuid4().hex}"
    yield prefix

    for obj in minio_client.list_objects(minio_metadata_bucket, prefix=f"{prefix}/", recursive=True):
        minio_client.remove_object(minio_metadata_bucket, obj.object_name)


@pytest.fixture
def minio_store(minio_client: Minio, minio_metadata_bucket: str) -> MinIODocumentStore:
    return MinIODocumentStore(minio_client, minio_metadata_bucket)


@pytest.fixture
def integration_cache_settings(integration_prefix: str) -> CacheSettings:
    return CacheSettings(cache_prefix=integration_prefix, lineage_concurrency=4)
