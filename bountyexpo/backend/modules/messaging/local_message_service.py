"""
Local Message Service

Fallback conversation store used when the server-side conversation call
fails, so the poster and hunter still get a conversation to coordinate in.
Conversations and messages are kept as JSON in a CacheStore.
"""
import json
from typing import List, Optional

from bountyexpo.shared.modules.bounty.ids import normalize_id
from bountyexpo.shared.modules.bounty.models.conversation import Conversation, Message
from bountyexpo.shared.modules.cache.cache_store import CacheStore
from bountyexpo.shared.modules.log.logger import get_logger

CONVERSATION_PREFIX = "local_conversation_"
MESSAGES_PREFIX = "local_messages_"


class LocalMessageService:
    def __init__(self, store: CacheStore):
        self.store = store
        self.logger = get_logger(self.__class__.__name__)

    def get_conversation(self, conversation_id) -> Optional[Conversation]:
        raw = self.store.get(f"{CONVERSATION_PREFIX}{normalize_id(conversation_id)}")
        return Conversation.model_validate_json(raw) if raw else None

    def list_conversations(self) -> List[Conversation]:
        conversations = []
        for key in self.store.keys(CONVERSATION_PREFIX):
            raw = self.store.get(key)
            if raw:
                conversations.append(Conversation.model_validate_json(raw))
        return conversations

    def get_or_create_conversation(self, participant_ids: List[str], name: str, bounty_id=None) -> Conversation:
        """
        Return the local conversation for the same participants and bounty,
        creating it when there is none.
        """
        participants = [p for p in (normalize_id(p) for p in participant_ids) if p is not None]
        bounty_id = normalize_id(bounty_id)
        for conversation in self.list_conversations():
            if conversation.bounty_id == bounty_id and conversation.has_participants(participants):
                return conversation

        conversation = Conversation(participant_ids=participants, bounty_id=bounty_id, name=name, is_local=True)
        self.store.set(f"{CONVERSATION_PREFIX}{conversation.id}", conversation.model_dump_json())
        self.logger.info(f"Created local conversation {conversation.id} for bounty {bounty_id}")
        return conversation

    def send_message(self, conversation_id, text: str, sender_id=None) -> Message:
        conversation_id = normalize_id(conversation_id)
        if self.get_conversation(conversation_id) is None:
            raise ValueError(f"Local conversation {conversation_id} not found")
        message = Message(conversation_id=conversation_id, sender_id=sender_id, text=text)
        messages = self.list_messages(conversation_id)
        messages.append(message)
        self.store.set(
            f"{MESSAGES_PREFIX}{conversation_id}",
            json.dumps([m.model_dump(mode="json") for m in messages]),
        )
        return message

    def list_messages(self, conversation_id) -> List[Message]:
        raw = self.store.get(f"{MESSAGES_PREFIX}{normalize_id(conversation_id)}")
        if not raw:
            return []
        return [Message(**m) for m in json.loads(raw)]
