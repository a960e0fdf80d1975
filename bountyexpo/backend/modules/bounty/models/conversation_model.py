from typing import Any, Dict

from bountyexpo.backend.models.base_nosql_model import BaseNoSqlModel
from bountyexpo.shared.modules.bounty.models.conversation import Conversation, Message


class ConversationModel(BaseNoSqlModel):
    """
    Conversations created server-side. Participants are stored as a list
    of user ids; the bounty id gives the conversation its context.
    """
    collection_name = "conversations"

    def _from_doc(self, doc: Dict[str, Any]) -> Conversation:
        return Conversation(**self._strip_id(doc))


class MessageModel(BaseNoSqlModel):
    collection_name = "messages"

    def _from_doc(self, doc: Dict[str, Any]) -> Message:
        return Message(**self._strip_id(doc))
