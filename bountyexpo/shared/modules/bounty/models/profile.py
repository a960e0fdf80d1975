from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from bountyexpo.shared.modules.bounty.ids import Id


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Id
    username: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    about: Optional[str] = None
    phone: Optional[str] = None
    balance: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("balance", mode="before")
    @classmethod
    def _missing_balance_is_zero(cls, value):
        return value or 0.0


class Session(BaseModel):
    """The authenticated session handed over by the auth provider."""
    user_id: Id
    email: Optional[str] = None
    access_token: Optional[str] = None
