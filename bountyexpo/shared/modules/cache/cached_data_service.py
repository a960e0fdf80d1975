"""
Cached Data Service

Offline-first data access: serves previously fetched data immediately,
revalidates it in the background, and stays usable without a network.

Two tiers are kept per key: an in-process dict (fastest, process lifetime)
and a durable CacheStore (survives restarts). The memory tier only ever
holds what was last written to or read from the durable tier.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import ValidationError

from bountyexpo.shared.modules.cache.cache_entry import CacheEntry
from bountyexpo.shared.modules.cache.cache_store import CacheStore
from bountyexpo.shared.modules.errors import OfflineCacheMissError
from bountyexpo.shared.modules.log.logger import get_logger
from bountyexpo.shared.modules.network.network_monitor import NetworkMonitor

CACHE_PREFIX = "cache_v1_"
CACHE_EXPIRY_MS = 24 * 60 * 60 * 1000  # 24 hours

FetchFn = Callable[[], Any]

# Marks "nothing cached", so a cached None is still a hit
MISSING = object()


class CachedDataService:
    """
    Stale-while-revalidate cache over a memory tier and a durable tier.
    """

    def __init__(
        self,
        store: CacheStore,
        network_monitor: Optional[NetworkMonitor] = None,
        default_ttl_ms: int = CACHE_EXPIRY_MS,
        run_in_background: bool = True,
        logger=None,
    ):
        self.store = store
        self.default_ttl_ms = default_ttl_ms
        self.run_in_background = run_in_background
        self.logger = logger or get_logger(self.__class__.__name__)
        self.memory_cache: Dict[str, CacheEntry] = {}
        self._background: List[threading.Thread] = []
        self._background_lock = threading.Lock()
        self._refreshing: Set[str] = set()

        self.is_online = True
        self._unsubscribe_network = None
        if network_monitor is not None:
            self.is_online = network_monitor.is_online()
            self._unsubscribe_network = network_monitor.subscribe(self._on_network_change)

    def _on_network_change(self, online: bool):
        self.is_online = online

    def close(self):
        if self._unsubscribe_network:
            self._unsubscribe_network()
            self._unsubscribe_network = None

    # -------------------------------------------------------------------------
    # Tier access
    # -------------------------------------------------------------------------
    @staticmethod
    def get_cache_key(key: str) -> str:
        return f"{CACHE_PREFIX}{key}"

    def _read_stored(self, key: str) -> Optional[CacheEntry]:
        try:
            stored = self.store.get(self.get_cache_key(key))
        except Exception as e:
            self.logger.error(f"Error reading from cache: {key}: {e}")
            return None
        if not stored:
            return None
        try:
            return CacheEntry.model_validate_json(stored)
        except (ValidationError, ValueError) as e:
            self.logger.error(f"Corrupt cache entry dropped: {key}: {e}")
            return None

    def _read_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Newest entry of any age. A fresh memory entry wins; otherwise the
        durable tier is consulted, since another worker may have refreshed
        it, and the newer of the two is kept in memory.
        """
        entry = self.memory_cache.get(key)
        if entry is not None and not entry.is_expired():
            return entry
        stored = self._read_stored(key)
        if stored is not None and (entry is None or stored.timestamp >= entry.timestamp):
            self.memory_cache[key] = stored
            return stored
        return entry

    def _fresh_data(self, key: str) -> Any:
        mem_entry = self.memory_cache.get(key)
        if mem_entry is not None and not mem_entry.is_expired():
            self.logger.info(f"Cache hit (memory): {key}")
            return mem_entry.data

        entry = self._read_entry(key)
        if entry is None:
            return MISSING
        if entry.is_expired():
            self.logger.info(f"Cache expired: {key}")
            return MISSING
        self.logger.info(f"Cache hit (storage): {key}")
        return entry.data

    def _any_data(self, key: str) -> Any:
        entry = self._read_entry(key)
        return MISSING if entry is None else entry.data

    def get_from_cache(self, key: str) -> Optional[Any]:
        """
        Get unexpired data from the cache, memory first, then the durable tier.
        Expired entries are left in place; they are still usable as a
        last resort when the network is unavailable.
        """
        data = self._fresh_data(key)
        return None if data is MISSING else data

    def get_any(self, key: str) -> Optional[Any]:
        """Get cached data of any age."""
        data = self._any_data(key)
        return None if data is MISSING else data

    def set_cache(self, key: str, data: Any, ttl: Optional[int] = None) -> CacheEntry:
        """
        Store data in both tiers. `data` must be JSON serialisable.
        """
        entry = CacheEntry.create(data, self.default_ttl_ms if ttl is None else ttl)
        self.memory_cache[key] = entry
        try:
            self.store.set(self.get_cache_key(key), entry.model_dump_json())
            self.logger.info(f"Cache updated: {key}")
        except Exception as e:
            self.logger.error(f"Error writing to cache: {key}: {e}")
        return entry

    # -------------------------------------------------------------------------
    # Fetch
    # -------------------------------------------------------------------------
    def fetch_with_cache(self, key: str, fetch_fn: FetchFn, ttl: Optional[int] = None, force_refresh: bool = False) -> Any:
        """
        Fetch data with automatic caching.

        Args:
            key: Unique cache key for the resource.
            fetch_fn: Zero-argument producer of the fresh value.
            ttl: Time to live in milliseconds (default 24h).
            force_refresh: Always call fetch_fn, even when the cache is fresh.

        Returns:
            The cached or freshly fetched data.

        Raises:
            OfflineCacheMissError: offline and nothing cached for the key.
            Exception: whatever fetch_fn raised, when there is no cached
                fallback at all.
        """
        if not self.is_online and not force_refresh:
            cached = self._any_data(key)
            if cached is not MISSING:
                self.logger.info(f"Using cached data (offline): {key}")
                return cached
            raise OfflineCacheMissError(key)

        try:
            if not force_refresh:
                cached = self._fresh_data(key)
                if cached is not MISSING:
                    self._revalidate(key, fetch_fn, ttl)
                    self.logger.info(f"Using cached data (stale-while-revalidate): {key}")
                    return cached

            data = fetch_fn()
            self.set_cache(key, data, ttl)
            return data
        except Exception as e:
            cached = self._any_data(key)
            if cached is not MISSING:
                self.logger.warning(f"Fetch failed, using cached data: {key}: {e}")
                return cached
            raise

    def _revalidate(self, key: str, fetch_fn: FetchFn, ttl: Optional[int]):
        """Refresh `key` from the source, at most one refresh per key at a time."""
        with self._background_lock:
            if key in self._refreshing:
                self.logger.info(f"Revalidation already running: {key}")
                return
            self._refreshing.add(key)

        def refresh():
            try:
                data = fetch_fn()
                self.set_cache(key, data, ttl)
            except Exception as e:
                self.logger.error(f"Background cache update failed: {key}: {e}")
            finally:
                with self._background_lock:
                    self._refreshing.discard(key)

        if not self.run_in_background:
            refresh()
            return

        thread = threading.Thread(target=refresh, name=f"cache-refresh-{key}", daemon=True)
        with self._background_lock:
            self._background = [t for t in self._background if t.is_alive()]
            self._background.append(thread)
        thread.start()

    def wait_for_background(self, timeout: Optional[float] = None) -> None:
        """Join outstanding background revalidations."""
        with self._background_lock:
            threads = list(self._background)
        for thread in threads:
            thread.join(timeout)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------
    def invalidate(self, key: str) -> None:
        self.memory_cache.pop(key, None)
        try:
            self.store.delete(self.get_cache_key(key))
            self.logger.info(f"Cache invalidated: {key}")
        except Exception as e:
            self.logger.error(f"Error invalidating cache: {key}: {e}")

    def clear_all(self) -> int:
        self.memory_cache.clear()
        try:
            cache_keys = self.store.keys(CACHE_PREFIX)
            if cache_keys:
                self.store.delete(*cache_keys)
            self.logger.info(f"Cleared {len(cache_keys)} cache entries")
            return len(cache_keys)
        except Exception as e:
            self.logger.error(f"Error clearing cache: {e}")
            return 0

    def clear_pattern(self, pattern: str) -> int:
        """Clear every entry whose key contains `pattern`."""
        for key in [k for k in self.memory_cache if pattern in k]:
            self.memory_cache.pop(key, None)
        try:
            matching = [k for k in self.store.keys(CACHE_PREFIX) if pattern in k[len(CACHE_PREFIX):]]
            if matching:
                self.store.delete(*matching)
            self.logger.info(f"Cleared {len(matching)} cache entries matching pattern: {pattern}")
            return len(matching)
        except Exception as e:
            self.logger.error(f"Error clearing cache pattern {pattern}: {e}")
            return 0

    def preload(self, items: Iterable[Tuple[str, FetchFn, Optional[int]]]) -> int:
        """
        Warm the cache for offline use. Items are (key, fetch_fn, ttl);
        individual failures are counted, not raised.
        """
        items = list(items)
        if not items:
            return 0

        def load(item):
            key, fetch_fn, ttl = item
            self.fetch_with_cache(key, fetch_fn, ttl=ttl)

        successful = 0
        with ThreadPoolExecutor(max_workers=min(8, len(items))) as pool:
            futures = [pool.submit(load, item) for item in items]
            for future in futures:
                try:
                    future.result()
                    successful += 1
                except Exception as e:
                    self.logger.warning(f"Preload item failed: {e}")
        self.logger.info(f"Preloaded {successful}/{len(items)} cache items")
        return successful

    def get_stats(self) -> Dict[str, Any]:
        try:
            storage_size = len(self.store.keys(CACHE_PREFIX))
        except Exception as e:
            self.logger.error(f"Error getting cache stats: {e}")
            storage_size = 0
        return {
            "memory_cache_size": len(self.memory_cache),
            "storage_cache_size": storage_size,
            "is_online": self.is_online,
        }

    def get_online_status(self) -> bool:
        return self.is_online


def dump_models(items) -> List[dict]:
    """JSON-ready form of a list of pydantic models, for caching."""
    return [item.model_dump(mode="json") for item in items]
