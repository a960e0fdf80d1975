"""
Backend settings, read from the environment with development defaults.
"""
import os

from pydantic import BaseModel

from bountyexpo.shared.modules.cache.cached_data_service import CACHE_EXPIRY_MS
from bountyexpo.shared.modules.profile.auth_profile_service import PROFILE_CACHE_EXPIRY_MS


class Settings(BaseModel):
    mongo_uri: str = "mongodb://localhost:27017/bountyexpo"
    secret_key: str = "dev-secret-change-me"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_cache_db: int = 0
    cache_backend: str = "redis"  # "redis" or "memory"
    cache_ttl_ms: int = CACHE_EXPIRY_MS
    profile_cache_ttl_ms: int = PROFILE_CACHE_EXPIRY_MS
    network_poll_interval: float = 15.0
    notification_queue: str = "notifications"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongo_uri=os.environ.get("MONGO_URI", cls.model_fields["mongo_uri"].default),
            secret_key=os.environ.get("SECRET_KEY", cls.model_fields["secret_key"].default),
            redis_host=os.environ.get("REDIS_HOST", "localhost"),
            redis_port=int(os.environ.get("REDIS_PORT", 6379)),
            redis_cache_db=int(os.environ.get("REDIS_CACHE_DB", 0)),
            cache_backend=os.environ.get("CACHE_BACKEND", "redis").lower(),
            cache_ttl_ms=int(os.environ.get("CACHE_TTL_MS", CACHE_EXPIRY_MS)),
            profile_cache_ttl_ms=int(os.environ.get("PROFILE_CACHE_TTL_MS", PROFILE_CACHE_EXPIRY_MS)),
            network_poll_interval=float(os.environ.get("NETWORK_POLL_INTERVAL", 15.0)),
            notification_queue=os.environ.get("NOTIFICATION_QUEUE", "notifications"),
        )
