from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.ids import Id


class Bounty(BaseModel):
    """
    A posted task with an optional monetary reward, owned by a poster.
    """
    model_config = ConfigDict(use_enum_values=True)  # Store enums as plain strings for Mongo/Redis

    id: Id
    title: str = ""
    description: Optional[str] = None
    amount: float = 0.0
    is_for_honor: bool = False
    status: BountyStatus = BountyStatus.OPEN
    poster_id: Optional[Id] = None
    accepted_by: Optional[Id] = None
    payment_intent_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_paid(self) -> bool:
        return not self.is_for_honor and self.amount > 0

    def is_open(self) -> bool:
        return self.status == BountyStatus.OPEN

    def with_status(self, status: BountyStatus, accepted_by: Optional[str] = None) -> "Bounty":
        updates = {"status": BountyStatus(status).value}
        if accepted_by is not None:
            updates["accepted_by"] = accepted_by
        return self.model_copy(update=updates)
