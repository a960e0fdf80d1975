from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bountyexpo.backend.modules.bounty.enums.acceptance_status_enum import AcceptanceErrorCode, AcceptanceStatus


class UserDialog(BaseModel):
    """A message the client should surface to the poster, with its button labels."""
    title: str
    message: str
    actions: List[str] = Field(default_factory=lambda: ["OK"])


class AcceptanceOutcome(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: AcceptanceStatus
    request_id: Optional[str] = None
    bounty_id: Optional[str] = None
    conversation_id: Optional[str] = None
    conversation_is_local: bool = False
    dialog: Optional[UserDialog] = None
    degraded_steps: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[AcceptanceErrorCode] = None

    def succeeded(self) -> bool:
        return self.status == AcceptanceStatus.SUCCEEDED
