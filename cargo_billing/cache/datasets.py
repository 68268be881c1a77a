# cargo_billing/cache/datasets.py

"""
Typed helpers over the local cache: stored datasets, the upload session,
raw file blobs and saved column mappings.
"""

import base64
import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from cargo_billing.core.config import Config
from cargo_billing.core.constants import CacheKeys
from cargo_billing.core.exceptions import CacheError
from cargo_billing.core.types import SetItemResult
from .local_cache import LocalCache

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60

# (key, serialized value or a callable producing it) -> outcome of the write
CacheWriter = Callable[[str, Union[str, Callable[[], str]]], Awaitable[SetItemResult]]


def generate_dataset_id() -> str:
    return f"dataset-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class DatasetCache:
    """
    Reads and writes the application's cache entries.

    Timestamps are epoch seconds. Every removal helper returns the number
    of items it removed so cleanup strategies can report progress.

    Writes that add data go through ``writer`` and return a SetItemResult;
    StorageQuotaMonitor installs its quota-aware ``safe_set_item`` there.
    Removals shrink usage and write to the cache directly.
    """

    def __init__(
        self,
        cache: LocalCache,
        clock: Callable[[], float] = time.time,
        writer: Optional[CacheWriter] = None,
    ):
        self.cache = cache
        self.clock = clock
        self.writer = writer

    def _load_json(self, key: str, default):
        raw = self.cache.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"⚠️ Corrupted cache entry '{key}': {e}")
            return default

    def _save_json(self, key: str, value):
        self.cache.set_item(key, json.dumps(value))

    async def _write_json(self, key: str, value) -> SetItemResult:
        """A callable value is rebuilt on every attempt, so a retry sees cleanup results."""
        def payload() -> str:
            return json.dumps(value() if callable(value) else value)

        if self.writer is not None:
            return await self.writer(key, payload)
        try:
            self.cache.set_item(key, payload())
        except CacheError as e:
            logger.error(f"❌ Cache write of '{key}' failed: {e.message}")
            return SetItemResult(success=False, error=e.message)
        return SetItemResult(success=True)

    # ------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------

    def get_datasets(self) -> List[Dict[str, Any]]:
        datasets = self._load_json(CacheKeys.DATASETS, [])
        return datasets if isinstance(datasets, list) else []

    def get_dataset(self, dataset_id: str) -> Optional[Dict[str, Any]]:
        for dataset in self.get_datasets():
            if dataset.get("id") == dataset_id:
                return dataset
        return None

    async def save_dataset(self, dataset: Dict[str, Any]) -> SetItemResult:
        """Insert or replace a dataset by id."""
        entry = dict(dataset)
        entry.setdefault("id", generate_dataset_id())
        entry.setdefault("timestamp", self.clock())

        def merged() -> List[Dict[str, Any]]:
            datasets = [d for d in self.get_datasets() if d.get("id") != entry["id"]]
            datasets.append(entry)
            return datasets

        return await self._write_json(CacheKeys.DATASETS, merged)

    def delete_dataset(self, dataset_id: str) -> bool:
        datasets = self.get_datasets()
        remaining = [d for d in datasets if d.get("id") != dataset_id]
        if len(remaining) == len(datasets):
            return False
        self._save_json(CacheKeys.DATASETS, remaining)
        return True

    def evict_datasets(self, max_age_days: float, keep_latest: int) -> int:
        """Drop datasets older than max_age_days, then keep only the newest keep_latest."""
        datasets = self.get_datasets()
        if not datasets:
            return 0
        cutoff = self.clock() - max_age_days * DAY_SECONDS
        recent = [d for d in datasets if float(d.get("timestamp") or 0) >= cutoff]
        recent.sort(key=lambda d: float(d.get("timestamp") or 0), reverse=True)
        kept = recent[:keep_latest]

        removed = len(datasets) - len(kept)
        if removed:
            if kept:
                self._save_json(CacheKeys.DATASETS, kept)
            else:
                self.cache.remove_item(CacheKeys.DATASETS)
        return removed

    def clean_old_datasets(self) -> int:
        return self.evict_datasets(Config.cache.RETENTION_DAYS, Config.cache.MAX_DATASETS)

    # ------------------------------------------------------------
    # Upload session
    # ------------------------------------------------------------

    def get_session(self) -> Optional[Dict[str, Any]]:
        return self._load_json(CacheKeys.CURRENT_SESSION, None)

    async def save_session(self, session: Dict[str, Any]) -> SetItemResult:
        return await self._write_json(CacheKeys.CURRENT_SESSION, session)

    def clear_session(self) -> int:
        return 1 if self.cache.remove_item(CacheKeys.CURRENT_SESSION) else 0

    # ------------------------------------------------------------
    # File blobs
    # ------------------------------------------------------------

    async def store_file(
        self, key: str, name: str, data: bytes, mime_type: str = "application/octet-stream"
    ) -> SetItemResult:
        return await self._write_json(CacheKeys.FILE_PREFIX + key, {
            "name": name,
            "type": mime_type,
            "size": len(data),
            "data": base64.b64encode(data).decode("ascii"),
            "timestamp": self.clock(),
        })

    def retrieve_file(self, key: str) -> Optional[bytes]:
        stored = self._load_json(CacheKeys.FILE_PREFIX + key, None)
        if not stored:
            return None
        return base64.b64decode(stored["data"])

    def file_keys(self) -> List[str]:
        return self.cache.keys(CacheKeys.FILE_PREFIX)

    def clear_files(self) -> int:
        removed = 0
        for key in self.file_keys():
            if self.cache.remove_item(key):
                removed += 1
        return removed

    # ------------------------------------------------------------
    # Column mappings
    # ------------------------------------------------------------

    async def save_column_mapping(self, name: str, mapping: List[Dict[str, Any]]) -> SetItemResult:
        return await self._write_json(CacheKeys.COLUMN_MAPPING_PREFIX + name, mapping)

    def get_column_mapping(self, name: str) -> Optional[List[Dict[str, Any]]]:
        return self._load_json(CacheKeys.COLUMN_MAPPING_PREFIX + name, None)

    def clear_column_mappings(self) -> int:
        removed = 0
        for key in self.cache.keys(CacheKeys.COLUMN_MAPPING_PREFIX):
            if self.cache.remove_item(key):
                removed += 1
        return removed
