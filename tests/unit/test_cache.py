from __future__ import annotations

import asyncio
import time

import pytest

from cargo_billing.cache.datasets import DAY_SECONDS, DatasetCache
from cargo_billing.cache.local_cache import LocalCache
from cargo_billing.cache.quota_monitor import StorageQuotaMonitor
from cargo_billing.core.constants import CacheKeys
from cargo_billing.core.exceptions import QuotaExceededError
from cargo_billing.core.types import CleanupStrategy

QUOTA = 10_000


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    return LocalCache(tmp_path / "cache", quota_bytes=QUOTA, namespace="cargo-")


@pytest.fixture
def monitor(cache) -> StorageQuotaMonitor:
    return StorageQuotaMonitor(cache, min_available_bytes=0)


def _fill(cache: LocalCache, key: str, size: int) -> None:
    cache.set_item(key, "x" * (size - len(key)))


# ------------------------------------------------------------
# LocalCache
# ------------------------------------------------------------


@pytest.mark.unit
def test_set_get_remove(cache) -> None:
    cache.set_item("cargo-a", "hello")

    assert cache.get_item("cargo-a") == "hello"
    assert cache.used_bytes() == len("cargo-a") + len("hello")
    assert cache.remove_item("cargo-a") is True
    assert cache.get_item("cargo-a") is None
    assert cache.remove_item("cargo-a") is False


@pytest.mark.unit
def test_quota_is_enforced_and_overwrites_are_net(cache) -> None:
    _fill(cache, "cargo-big", 9_000)

    with pytest.raises(QuotaExceededError):
        _fill(cache, "cargo-more", 2_000)
    _fill(cache, "cargo-big", 9_500)

    assert cache.used_bytes() == 9_500


@pytest.mark.unit
def test_usage_survives_reopening(tmp_path) -> None:
    first = LocalCache(tmp_path / "c", quota_bytes=QUOTA)
    first.set_item("cargo-k/with:odd chars", "välue")

    reopened = LocalCache(tmp_path / "c", quota_bytes=QUOTA)

    assert reopened.get_item("cargo-k/with:odd chars") == "välue"
    assert reopened.used_bytes() == first.used_bytes()


@pytest.mark.unit
def test_clear_namespace_keeps_foreign_keys(cache) -> None:
    cache.set_item("cargo-a", "1")
    cache.set_item("cargo-b", "2")
    cache.set_item("other-app", "3")

    assert cache.clear_namespace() == 2
    assert cache.keys() == ["other-app"]


# ------------------------------------------------------------
# DatasetCache
# ------------------------------------------------------------


@pytest.mark.unit
async def test_dataset_crud_and_eviction(cache) -> None:
    now = time.time()
    datasets = DatasetCache(cache, clock=lambda: now)
    await datasets.save_dataset({"id": "old", "name": "old", "timestamp": now - 10 * DAY_SECONDS})
    await datasets.save_dataset({"id": "new", "name": "new"})
    await datasets.save_dataset({"id": "new", "name": "renamed"})

    assert [d["id"] for d in datasets.get_datasets()] == ["old", "new"]
    assert datasets.get_dataset("new")["name"] == "renamed"
    assert datasets.clean_old_datasets() == 1
    assert [d["id"] for d in datasets.get_datasets()] == ["new"]
    assert datasets.delete_dataset("new") is True
    assert datasets.delete_dataset("new") is False


@pytest.mark.unit
def test_corrupted_dataset_list_reads_as_empty(cache) -> None:
    cache.set_item(CacheKeys.DATASETS, "{not json")

    assert DatasetCache(cache).get_datasets() == []


@pytest.mark.unit
async def test_session_files_and_mappings(cache) -> None:
    datasets = DatasetCache(cache)
    await datasets.save_session({"mailAgent": "agent.xlsx"})
    await datasets.store_file("upload-1", "agent.xlsx", b"\x00\x01binary")
    await datasets.save_column_mapping("mail-agent", [{"excelColumn": "Rec. ID", "mappedTo": "rec_id"}])

    assert datasets.get_session() == {"mailAgent": "agent.xlsx"}
    assert datasets.retrieve_file("upload-1") == b"\x00\x01binary"
    assert datasets.get_column_mapping("mail-agent")[0]["mappedTo"] == "rec_id"
    assert datasets.clear_files() == 1
    assert datasets.clear_column_mappings() == 1
    assert datasets.clear_session() == 1
    assert datasets.clear_session() == 0


@pytest.mark.unit
async def test_unmonitored_write_over_quota_returns_failure(cache) -> None:
    result = await DatasetCache(cache).store_file("upload-1", "agent.xlsx", b"f" * 9_000)

    assert result.success is False
    assert result.cleanup_performed is False
    assert DatasetCache(cache).file_keys() == []


# ------------------------------------------------------------
# StorageQuotaMonitor
# ------------------------------------------------------------


@pytest.mark.unit
def test_check_quota_thresholds(cache) -> None:
    monitor = StorageQuotaMonitor(cache, min_available_bytes=200)
    _fill(cache, "cargo-a", 7_100)

    info = monitor.check_quota()
    assert info.is_near_limit is True
    assert info.is_full is False

    _fill(cache, "cargo-a", 9_850)
    info = monitor.check_quota()
    assert info.is_full is True
    assert info.available_bytes == 150


@pytest.mark.unit
def test_low_available_bytes_alone_means_full(tmp_path) -> None:
    small = LocalCache(tmp_path / "s", quota_bytes=1_000)
    small.set_item("cargo-a", "x" * 100)

    info = StorageQuotaMonitor(small, min_available_bytes=2_000).check_quota()

    assert info.percentage < 70
    assert info.is_full is True


@pytest.mark.unit
async def test_cleanup_stops_after_first_sufficient_strategy(cache) -> None:
    _fill(cache, "cargo-blob", 8_000)
    calls = []

    def free_blob() -> int:
        calls.append("free")
        cache.remove_item("cargo-blob")
        return 1

    def emergency() -> int:
        calls.append("emergency")
        return cache.clear_namespace()

    monitor = StorageQuotaMonitor(
        cache,
        strategies=[
            CleanupStrategy("free", "Free the blob", free_blob),
            CleanupStrategy("emergency", "Clear everything", emergency),
        ],
        min_available_bytes=0,
    )
    progress = []

    result = await monitor.perform_progressive_cleanup(
        on_progress=lambda name, description, removed: progress.append((name, removed))
    )

    assert result.success is True
    assert result.strategies_used == ["free"]
    assert result.total_items_removed == 1
    assert calls == ["free"]
    assert progress == [("free", 1)]


@pytest.mark.unit
async def test_default_strategies_run_in_order_until_relieved(cache, monitor) -> None:
    datasets = monitor.datasets
    await datasets.save_dataset({"id": "recent", "payload": "d" * 500})
    await datasets.store_file("upload-1", "agent.xlsx", b"f" * 6_000)

    result = await monitor.perform_progressive_cleanup()

    assert result.success is True
    assert result.strategies_used == ["old-datasets", "file-blobs"]
    assert datasets.get_dataset("recent") is not None


@pytest.mark.unit
async def test_failing_strategy_is_skipped(cache) -> None:
    _fill(cache, "cargo-blob", 8_000)

    def broken() -> int:
        raise OSError("disk gone")

    monitor = StorageQuotaMonitor(
        cache,
        strategies=[
            CleanupStrategy("broken", "Always fails", broken),
            CleanupStrategy("emergency", "Clear everything", cache.clear_namespace),
        ],
        min_available_bytes=0,
    )

    result = await monitor.perform_progressive_cleanup()

    assert result.strategies_used == ["emergency"]
    assert result.success is True


@pytest.mark.unit
async def test_safe_set_item_cleans_up_and_retries_once(cache, monitor) -> None:
    await monitor.datasets.store_file("upload-1", "agent.xlsx", b"f" * 6_000)

    result = await monitor.safe_set_item("cargo-new", "n" * 3_000)

    assert result.success is True
    assert result.cleanup_performed is True
    assert cache.get_item("cargo-new") == "n" * 3_000
    assert monitor.datasets.file_keys() == []


@pytest.mark.unit
async def test_dataset_write_under_pressure_evicts_files(monitor) -> None:
    datasets = monitor.datasets
    await datasets.store_file("old", "agent.xlsx", b"f" * 6_000)

    result = await datasets.save_dataset({"id": "new", "payload": "d" * 2_000})

    assert result.success is True
    assert result.cleanup_performed is True
    assert datasets.file_keys() == []
    assert datasets.get_dataset("new")["payload"] == "d" * 2_000


@pytest.mark.unit
async def test_safe_set_item_reports_failure_after_retry(cache, monitor) -> None:
    result = await monitor.safe_set_item("cargo-huge", "h" * (QUOTA + 1))

    assert result.success is False
    assert result.cleanup_performed is True
    assert "session may not persist" in result.error


@pytest.mark.unit
async def test_safe_set_item_without_pressure_skips_cleanup(monitor) -> None:
    result = await monitor.safe_set_item("cargo-small", "s")

    assert result.success is True
    assert result.cleanup_performed is False


@pytest.mark.unit
async def test_cleanup_passes_never_overlap(cache) -> None:
    active = 0
    overlaps = []

    async def slow_progress(name, description, removed) -> None:
        nonlocal active
        active += 1
        overlaps.append(active)
        await asyncio.sleep(0.01)
        active -= 1

    monitor = StorageQuotaMonitor(
        cache,
        strategies=[CleanupStrategy("noop", "Nothing to remove", lambda: 0)],
        min_available_bytes=0,
    )

    await asyncio.gather(
        monitor.perform_progressive_cleanup(slow_progress),
        monitor.perform_progressive_cleanup(slow_progress),
    )

    assert overlaps == [1, 1]


@pytest.mark.unit
async def test_watch_logs_until_stopped(cache, caplog) -> None:
    monitor = StorageQuotaMonitor(cache, min_available_bytes=0)
    _fill(cache, "cargo-a", 9_500)
    stop = asyncio.Event()

    task = asyncio.create_task(monitor.watch(interval=0.01, stop_event=stop))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(task, timeout=1)

    assert "Cache full" in caplog.text
    assert cache.get_item("cargo-a") is not None
