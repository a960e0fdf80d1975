import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from bountyexpo.shared.modules.bounty.ids import Id


class Conversation(BaseModel):
    """
    Coordination channel between a poster and the accepted hunter,
    scoped to a bounty.
    """
    id: Id = Field(default_factory=lambda: str(uuid.uuid4()))
    participant_ids: List[Id] = Field(default_factory=list)
    bounty_id: Optional[Id] = None
    name: str = "Conversation"
    is_local: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def has_participants(self, participant_ids) -> bool:
        return sorted(self.participant_ids) == sorted(participant_ids)


class Message(BaseModel):
    id: Id = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: Id
    sender_id: Optional[Id] = None
    text: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
