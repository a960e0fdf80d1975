import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bountyexpo.shared.modules.bounty.ids import Id
from bountyexpo.shared.modules.payments.enums.escrow_status_enum import EscrowStatus


class Escrow(BaseModel):
    """
    Funds held from a poster's balance for a paid bounty, from acceptance
    until completion or refund.
    """
    model_config = ConfigDict(use_enum_values=True)

    id: Id = Field(default_factory=lambda: str(uuid.uuid4()))
    bounty_id: Id
    poster_id: Id
    amount: float
    title: str = ""
    status: EscrowStatus = EscrowStatus.HELD
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
