"""
Shared pytest fixtures for cache and lineage tests.

Provides an in-memory document store, a controllable clock, and factories for
cached asset records so tests never need a running MinIO.
"""

import asyncio
import copy
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from libs.models import AssetType, CacheSettings
from services.cache import CacheService, DocumentNotFound, MemoryTier


BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Fakes
# =============================================================================


class FakeDocumentStore:
    """
    Dict-backed DocumentStore.

    Documents go through a JSON round-trip on write, like the real store.
    Failures can be injected per key (``fail_get``) or for every write
    (``fail_put``). With ``yield_io`` set, every get and put suspends once,
    so concurrent callers interleave the way they do against a real store.
    """

    def __init__(self) -> None:
        self.documents: dict[str, Any] = {}
        self.fail_get: dict[str, Exception] = {}
        self.fail_put: Optional[Exception] = None
        self.get_calls: list[str] = []
        self.put_calls: list[str] = []
        self.bucket_ensured = False
        self.yield_io = False

    async def get_document(self, key: str) -> Any:
        self.get_calls.append(key)
        if self.yield_io:
            await asyncio.sleep(0)
        if key in self.fail_get:
            raise self.fail_get[key]
        if key not in self.documents:
            raise DocumentNotFound(key)
        return copy.deepcopy(self.documents[key])

    async def put_document(self, key: str, document: Any) -> None:
        self.put_calls.append(key)
        if self.yield_io:
            await asyncio.sleep(0)
        if self.fail_put is not None:
            raise self.fail_put
        self.documents[key] = json.loads(json.dumps(document, default=str))

    async def list_keys(self, prefix: str) -> list[str]:
        return sorted(key for key in self.documents if key.startswith(prefix))

    async def delete_document(self, key: str) -> None:
        if key not in self.documents:
            raise DocumentNotFound(key)
        del self.documents[key]

    async def ensure_bucket(self) -> None:
        self.bucket_ensured = True


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def fake_store():
    """Empty in-memory document store."""
    return FakeDocumentStore()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache_settings():
    """Cache settings with explicit values (independent of the environment)."""
    return CacheSettings(
        cache_prefix="cache",
        memory_ttl_seconds=600,
        host_memory_mb=512,
        lineage_ttl_seconds=1800,
        lineage_concurrency=4,
        default_page_size=100,
        flat_file_match_window_seconds=120,
    )


@pytest.fixture
def memory_tier(fake_clock):
    return MemoryTier(max_entries=1000, ttl_seconds=600, clock=fake_clock)


@pytest.fixture
def cache_service(fake_store, memory_tier, cache_settings):
    """CacheService wired to the fake store."""
    service = CacheService(fake_store, memory_tier, cache_settings)
    yield service
    service.close()


# =============================================================================
# Record Fixtures
# =============================================================================


@pytest.fixture
def make_record():
    """
    Factory for per-type cache document entries (camelCase dicts).

    Example:
        make_record("dataset", "d1", datasource_ids=["ds1"])
    """

    def _make(
        asset_type: str,
        asset_id: str,
        name: Optional[str] = None,
        status: str = "active",
        export: bool = True,
        source_type: Optional[str] = None,
        description: Optional[str] = None,
        dataset_ids: Optional[list[str]] = None,
        datasource_ids: Optional[list[str]] = None,
        source_analysis_id: Optional[str] = None,
        created: Optional[datetime] = None,
        updated: Optional[datetime] = None,
        tags: Optional[list[dict]] = None,
    ) -> dict:
        created = created or BASE_TIME
        record: dict[str, Any] = {
            "assetId": asset_id,
            "assetType": asset_type,
            "assetName": name if name is not None else f"{asset_type} {asset_id}",
            "arn": f"arn:aws:quicksight:us-east-1:123456789012:{asset_type}/{asset_id}",
            "status": status,
            "createdTime": created.isoformat(),
            "lastUpdatedTime": (updated or created).isoformat(),
            "tags": tags or [],
            "metadata": {},
        }
        if export:
            record["exportFilePath"] = f"assets/{asset_type}s/{asset_id}.json"
        if source_type is not None:
            record["metadata"]["sourceType"] = source_type
        if description is not None:
            record["metadata"]["description"] = description

        lineage: dict[str, Any] = {}
        if dataset_ids is not None:
            lineage["datasetIds"] = dataset_ids
        if datasource_ids is not None:
            lineage["datasourceIds"] = datasource_ids
        if source_analysis_id is not None:
            lineage["sourceAnalysisArn"] = (
                f"arn:aws:quicksight:us-east-1:123456789012:analysis/{source_analysis_id}"
            )
        if lineage:
            record["metadata"]["lineageData"] = lineage
        return record

    return _make


@pytest.fixture
def seed(fake_store, cache_settings):
    """Write per-type cache documents into the fake store."""

    def _seed(*records: dict) -> None:
        by_type: dict[str, list[dict]] = {}
        for record in records:
            by_type.setdefault(record["assetType"], []).append(record)
        for asset_type, entries in by_type.items():
            key = cache_settings.type_document_key(AssetType(asset_type))
            fake_store.documents.setdefault(key, []).extend(entries)

    return _seed


@pytest.fixture
def minutes():
    """Offset from the shared base timestamp."""

    def _minutes(value: float) -> datetime:
        return BASE_TIME + timedelta(minutes=value)

    return _minutes
