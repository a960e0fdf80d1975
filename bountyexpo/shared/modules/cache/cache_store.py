# Abstract cache interface, implemented once per durable tier (Redis, in-process dict)
from abc import ABC, abstractmethod
from typing import List, Optional


class CacheStore(ABC):
    @abstractmethod
    def get(self, cache_key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, cache_key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, *cache_keys: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError
