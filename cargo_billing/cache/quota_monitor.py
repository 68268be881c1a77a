# cargo_billing/cache/quota_monitor.py

"""
Quota monitoring and progressive eviction for the local cache.

Cleanup strategies run from least to most destructive and the pass stops
as soon as usage is back under the near-limit threshold.
"""

import asyncio
import inspect
import logging
from typing import Callable, List, Optional, Union

from cargo_billing.core.config import Config
from cargo_billing.core.constants import ErrorMessages
from cargo_billing.core.exceptions import CacheError, QuotaExceededError
from cargo_billing.core.types import CleanupResult, CleanupStrategy, QuotaInfo, SetItemResult
from .datasets import DatasetCache
from .local_cache import LocalCache

logger = logging.getLogger(__name__)

# (strategy name, description, items removed)
CleanupProgress = Callable[[str, str, int], object]


class StorageQuotaMonitor:
    """
    Watches cache usage and frees space when a write hits the quota.

    Usage:
        monitor = StorageQuotaMonitor(LocalCache())
        result = await monitor.safe_set_item(key, payload)
        if not result.success:
            logger.warning(result.error)   # non-fatal for the caller
    """

    def __init__(
        self,
        cache: LocalCache,
        datasets: Optional[DatasetCache] = None,
        strategies: Optional[List[CleanupStrategy]] = None,
        near_limit_percent: Optional[float] = None,
        full_percent: Optional[float] = None,
        min_available_bytes: Optional[int] = None,
    ):
        self.cache = cache
        self.datasets = datasets or DatasetCache(cache)
        if self.datasets.writer is None:
            self.datasets.writer = self.safe_set_item
        self.near_limit_percent = near_limit_percent or Config.cache.NEAR_LIMIT_PERCENT
        self.full_percent = full_percent or Config.cache.FULL_PERCENT
        self.min_available_bytes = (
            Config.cache.MIN_AVAILABLE_BYTES if min_available_bytes is None else min_available_bytes
        )
        self.strategies = strategies if strategies is not None else self.default_strategies()
        self._cleanup_lock = asyncio.Lock()

    def default_strategies(self) -> List[CleanupStrategy]:
        """Ordered from least to most destructive."""
        datasets = self.datasets
        return [
            CleanupStrategy(
                "old-datasets",
                f"Remove datasets older than {Config.cache.RETENTION_DAYS} days",
                datasets.clean_old_datasets,
            ),
            CleanupStrategy(
                "file-blobs",
                "Remove stored upload files",
                datasets.clear_files,
            ),
            CleanupStrategy(
                "upload-session",
                "Clear the upload session",
                datasets.clear_session,
            ),
            CleanupStrategy(
                "column-mappings",
                "Clear saved column mappings",
                datasets.clear_column_mappings,
            ),
            CleanupStrategy(
                "aggressive-datasets",
                f"Keep only the {Config.cache.AGGRESSIVE_MAX_DATASETS} newest datasets "
                f"from the last {Config.cache.AGGRESSIVE_RETENTION_DAYS} day(s)",
                lambda: datasets.evict_datasets(
                    Config.cache.AGGRESSIVE_RETENTION_DAYS, Config.cache.AGGRESSIVE_MAX_DATASETS
                ),
            ),
            CleanupStrategy(
                "emergency",
                "Clear every cache entry of the application",
                self.cache.clear_namespace,
            ),
        ]

    # ------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------

    def check_quota(self) -> QuotaInfo:
        used = self.cache.used_bytes()
        quota = self.cache.quota_bytes
        available = max(quota - used, 0)
        percentage = (used / quota) * 100 if quota else 100.0
        return QuotaInfo(
            used_bytes=used,
            available_bytes=available,
            percentage=percentage,
            is_near_limit=percentage > self.near_limit_percent,
            is_full=percentage > self.full_percent or available < self.min_available_bytes,
        )

    def _relieved(self, info: QuotaInfo) -> bool:
        return not info.is_full and info.percentage < self.near_limit_percent

    # ------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------

    async def perform_progressive_cleanup(
        self, on_progress: Optional[CleanupProgress] = None
    ) -> CleanupResult:
        """
        Run cleanup strategies in order until quota pressure is gone.

        Only one pass runs at a time; a second caller waits for the first.
        """
        async with self._cleanup_lock:
            result = CleanupResult(success=False)
            before = self.check_quota()
            logger.info(f"🧹 Cache cleanup started at {before.percentage:.1f}% usage")

            for strategy in self.strategies:
                try:
                    removed = strategy.execute()
                except Exception as e:
                    logger.error(f"❌ Cleanup strategy '{strategy.name}' failed: {e}")
                    continue

                result.strategies_used.append(strategy.name)
                result.total_items_removed += removed
                logger.info(f"🔹 {strategy.description}: {removed} items removed")

                if on_progress is not None:
                    try:
                        outcome = on_progress(strategy.name, strategy.description, removed)
                        if inspect.isawaitable(outcome):
                            await outcome
                    except Exception as e:
                        logger.warning(f"⚠️ Cleanup progress callback failed: {e}")

                await asyncio.sleep(0)
                if self._relieved(self.check_quota()):
                    break

            after = self.check_quota()
            result.success = self._relieved(after)
            if result.success:
                logger.info(
                    f"✅ Cache cleanup freed {before.used_bytes - after.used_bytes} bytes "
                    f"using {len(result.strategies_used)} strategies"
                )
            else:
                logger.warning(f"⚠️ Cache still at {after.percentage:.1f}% after cleanup")
            return result

    async def safe_set_item(self, key: str, value: Union[str, Callable[[], str]]) -> SetItemResult:
        """
        Write; on quota failure clean up and retry exactly once.

        A callable value is called for each attempt, so the retry is built
        from the cache as cleanup left it.
        """
        def resolve() -> str:
            return value() if callable(value) else value

        try:
            self.cache.set_item(key, resolve())
            return SetItemResult(success=True)
        except QuotaExceededError as e:
            logger.warning(f"⚠️ Cache quota exceeded writing '{key}', cleaning up: {e.message}")
        except CacheError as e:
            logger.error(f"❌ Cache write of '{key}' failed: {e.message}")
            return SetItemResult(success=False, error=e.message)

        await self.perform_progressive_cleanup()

        try:
            self.cache.set_item(key, resolve())
        except CacheError as e:
            message = ErrorMessages.CACHE_WRITE_FAILED.format(error=e.message)
            logger.error(f"❌ {message}")
            return SetItemResult(success=False, error=message, cleanup_performed=True)
        return SetItemResult(success=True, cleanup_performed=True)

    # ------------------------------------------------------------
    # Background monitoring
    # ------------------------------------------------------------

    async def watch(self, interval: Optional[float] = None, stop_event: Optional[asyncio.Event] = None):
        """Log quota state every interval seconds until stop_event is set."""
        interval = interval or Config.cache.MONITOR_INTERVAL_SECONDS
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            info = self.check_quota()
            if info.is_full:
                logger.error(
                    f"❌ Cache full: {info.percentage:.1f}% used, {info.available_bytes} bytes left"
                )
            elif info.is_near_limit:
                logger.warning(f"⚠️ Cache near limit: {info.percentage:.1f}% used")
            else:
                logger.debug(f"Cache usage {info.percentage:.1f}%")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
