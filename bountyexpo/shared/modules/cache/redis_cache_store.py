"""
Redis Cache Store

Durable tier of the data cache. Values survive process restarts; every
entry is a JSON string under its full (prefixed) key.
"""
import os
from typing import List, Optional

import redis

from bountyexpo.shared.modules.cache.cache_store import CacheStore


class RedisCacheStore(CacheStore):
    """
    A CacheStore backed by a Redis database.
    """

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None, db: Optional[int] = None, client=None):
        """
        Initializes the store and its Redis connection.

        Args:
            host (str): The Redis server hostname. Defaults to REDIS_HOST.
            port (int): The Redis server port. Defaults to REDIS_PORT.
            db (int): The Redis database index. Defaults to REDIS_CACHE_DB.
            client: An already configured redis client to use instead.
        """
        self.host = host or os.environ.get("REDIS_HOST", "localhost")
        self.port = port or int(os.environ.get("REDIS_PORT", 6379))
        self.db = db if db is not None else int(os.environ.get("REDIS_CACHE_DB", 0))
        self.redis = client or redis.StrictRedis(
            host=self.host,
            port=self.port,
            db=self.db,
            decode_responses=True
        )

    def get(self, cache_key: str) -> Optional[str]:
        return self.redis.get(cache_key)

    def set(self, cache_key: str, value: str) -> None:
        self.redis.set(cache_key, value)

    def delete(self, *cache_keys: str) -> int:
        if not cache_keys:
            return 0
        return self.redis.delete(*cache_keys)

    def keys(self, prefix: str = "") -> List[str]:
        # SCAN rather than KEYS so a large keyspace does not block the server
        return list(self.redis.scan_iter(match=f"{prefix}*"))

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.exceptions.ConnectionError:
            return False
