import time
from typing import Any, Optional

from pydantic import BaseModel


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheEntry(BaseModel):
    """
    A cached value with its write time and expiry, both epoch milliseconds.
    """
    data: Any = None
    timestamp: int
    expires_at: int

    @classmethod
    def create(cls, data: Any, ttl_ms: int, now: Optional[int] = None) -> "CacheEntry":
        written = now if now is not None else now_ms()
        return cls(data=data, timestamp=written, expires_at=written + ttl_ms)

    def is_expired(self, now: Optional[int] = None) -> bool:
        return (now if now is not None else now_ms()) > self.expires_at
