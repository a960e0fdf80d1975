"""
Notification Dispatcher

Queues push notifications for the delivery worker. Dispatch is fire and
forget from the caller's point of view.
"""
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.log.logger import get_logger
from bountyexpo.shared.modules.queue.redis_client import RedisQueueClient


class AcceptanceNotification(BaseModel):
    """Event pushed when a hunter's application is accepted."""
    user_id: str
    type: str = "acceptance"
    title: str = "Bounty Application Accepted!"
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)

    @classmethod
    def for_bounty(cls, hunter_id: str, poster_id: Optional[str], bounty_id: Optional[str], bounty: Optional[Bounty]):
        title = bounty.title if bounty and bounty.title else "the bounty"
        data: Dict[str, Any] = {"bountyId": bounty_id, "posterId": poster_id}
        if bounty and bounty.amount:
            data["amount"] = bounty.amount
        return cls(
            user_id=hunter_id,
            body=f'Your application for "{title}" has been accepted!',
            data=data,
        )


class NotificationDispatcher:
    def __init__(self, queue_client: RedisQueueClient):
        self.queue_client = queue_client
        self.logger = get_logger(self.__class__.__name__)

    def dispatch(self, notification: AcceptanceNotification) -> None:
        self.queue_client.push_event(notification.model_dump(mode="json"))
        self.logger.info(f"Queued {notification.type} notification for user {notification.user_id}")
