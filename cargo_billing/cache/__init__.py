# cargo_billing/cache/__init__.py

from .local_cache import LocalCache
from .datasets import DatasetCache, generate_dataset_id
from .quota_monitor import StorageQuotaMonitor

__all__ = ["LocalCache", "DatasetCache", "StorageQuotaMonitor", "generate_dataset_id"]
