"""
In-process CacheStore, for development and tests. Contents live as long as
the process does.
"""
import threading
from typing import Dict, List, Optional

from bountyexpo.shared.modules.cache.cache_store import CacheStore


class MemoryCacheStore(CacheStore):
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, cache_key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(cache_key)

    def set(self, cache_key: str, value: str) -> None:
        with self._lock:
            self._data[cache_key] = value

    def delete(self, *cache_keys: str) -> int:
        removed = 0
        with self._lock:
            for key in cache_keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
        return removed

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]
