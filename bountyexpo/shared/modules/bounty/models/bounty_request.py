from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from bountyexpo.shared.modules.bounty.enums.bounty_request_status_enum import BountyRequestStatus
from bountyexpo.shared.modules.bounty.ids import Id
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.profile import Profile


class BountyRequest(BaseModel):
    """
    A hunter's application to a bounty.
    """
    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    id: Id
    bounty_id: Optional[Id] = None
    hunter_id: Optional[Id] = None
    poster_id: Optional[Id] = None
    status: BountyRequestStatus = BountyRequestStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_user_id(cls, data):
        # Older rows carry the hunter under `user_id`
        if isinstance(data, dict) and not data.get("hunter_id") and data.get("user_id") is not None:
            data = {**data, "hunter_id": data["user_id"]}
        return data

    def is_pending(self) -> bool:
        return self.status == BountyRequestStatus.PENDING


class BountyRequestWithDetails(BountyRequest):
    """A request joined with its bounty and the hunter's profile."""
    bounty: Optional[Bounty] = None
    profile: Optional[Profile] = None

    def resolved_bounty_id(self) -> Optional[str]:
        if self.bounty is not None:
            return self.bounty.id
        return self.bounty_id

    def hunter_username(self) -> Optional[str]:
        return self.profile.username if self.profile else None
