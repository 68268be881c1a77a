# cargo_billing/cache/local_cache.py

"""
File-backed key/value string cache with a byte quota.

Each key is one file under the cache directory. Usage is counted as the
UTF-8 size of every key plus its value, so the quota behaves like a
browser storage area rather than a disk allowance.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

from cargo_billing.core.config import Config
from cargo_billing.core.exceptions import CacheError, QuotaExceededError

logger = logging.getLogger(__name__)

_SUFFIX = ".entry"


class LocalCache:
    """Namespaced string cache persisted in a directory."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        quota_bytes: Optional[int] = None,
        namespace: Optional[str] = None,
    ):
        self.directory = Path(directory or Config.paths.CACHE_DIR)
        self.quota_bytes = quota_bytes or Config.cache.QUOTA_BYTES
        self.namespace = namespace if namespace is not None else Config.cache.NAMESPACE
        self.directory.mkdir(parents=True, exist_ok=True)
        self._sizes: Dict[str, int] = self._scan()

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{_SUFFIX}"

    @staticmethod
    def _entry_size(key: str, value: str) -> int:
        return len(key.encode("utf-8")) + len(value.encode("utf-8"))

    def _scan(self) -> Dict[str, int]:
        sizes = {}
        for path in self.directory.glob(f"*{_SUFFIX}"):
            key = unquote(path.name[:-len(_SUFFIX)])
            sizes[key] = len(key.encode("utf-8")) + path.stat().st_size
        return sizes

    # ------------------------------------------------------------
    # Storage API
    # ------------------------------------------------------------

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if key not in self._sizes or not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str):
        """
        Store a value.

        Raises:
            QuotaExceededError: the write would push usage over the quota
            CacheError: the entry could not be written
        """
        value = str(value)
        new_size = self._entry_size(key, value)
        projected = self.used_bytes() - self._sizes.get(key, 0) + new_size
        if projected > self.quota_bytes:
            raise QuotaExceededError(
                f"Writing '{key}' needs {new_size} bytes; "
                f"{self.quota_bytes - self.used_bytes()} bytes available",
                {"key": key, "size": new_size, "quota": self.quota_bytes},
            )

        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise CacheError(f"Failed to write cache entry '{key}': {e}", {"key": key})
        self._sizes[key] = new_size

    def remove_item(self, key: str) -> bool:
        """Remove a key; returns False when it was not stored."""
        if key not in self._sizes:
            return False
        self._path(key).unlink(missing_ok=True)
        del self._sizes[key]
        return True

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._sizes if k.startswith(prefix))

    def used_bytes(self) -> int:
        return sum(self._sizes.values())

    def clear_namespace(self) -> int:
        """Remove every key of this application's namespace."""
        removed = 0
        for key in self.keys(self.namespace):
            if self.remove_item(key):
                removed += 1
        logger.debug(f"Cleared {removed} keys under '{self.namespace}'")
        return removed

    def __len__(self) -> int:
        return len(self._sizes)
