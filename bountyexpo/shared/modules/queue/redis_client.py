import json
import os
from typing import Optional

import redis

from bountyexpo.shared.modules.log.logger import get_logger


class RedisQueueClient:
    """
    JSON event queue on a Redis list. Producers RPUSH, consumers BLPOP.
    """

    def __init__(self, queue_name: str, host: Optional[str] = None, port: Optional[int] = None, client=None):
        self.host = host or os.environ.get("REDIS_HOST", "localhost")
        self.port = port or int(os.environ.get("REDIS_PORT", 6379))
        self.queue_name = queue_name
        self.logger = get_logger(self.__class__.__name__)
        self.redis = client or redis.StrictRedis(
            host=self.host,
            port=self.port,
            decode_responses=True
        )

    def push_event(self, event: dict) -> int:
        """
        Push a JSON event to the Redis queue.
        Returns the queue length after the push.
        """
        try:
            return self.redis.rpush(self.queue_name, json.dumps(event, default=str))
        except redis.exceptions.ConnectionError as e:
            self.logger.error(f"Could not publish to Redis queue '{self.queue_name}': {e}")
            raise

    def length(self) -> int:
        return self.redis.llen(self.queue_name)
