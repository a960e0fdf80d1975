"""
BountyBackend implementation on MongoDB.
"""
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from bountyexpo.backend.modules.bounty.models.bounty_model import BountyModel
from bountyexpo.backend.modules.bounty.models.bounty_request_model import BountyRequestModel
from bountyexpo.backend.modules.bounty.models.conversation_model import ConversationModel, MessageModel
from bountyexpo.backend.modules.bounty.models.profile_model import ProfileModel
from bountyexpo.shared.modules.bounty.bounty_backend import BountyBackend
from bountyexpo.shared.modules.bounty.enums.bounty_request_status_enum import BountyRequestStatus
from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.ids import normalize_id
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequest
from bountyexpo.shared.modules.bounty.models.conversation import Conversation, Message
from bountyexpo.shared.modules.bounty.models.profile import Profile
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode, PaymentError
from bountyexpo.shared.modules.log.logger import get_logger
from bountyexpo.shared.modules.payments.payments_provider import PaymentsProvider


class MongoBountyBackend(BountyBackend):
    """
    Row-level CRUD over the bounties, bounty_requests, conversations,
    messages and profiles collections.
    """

    def __init__(self, mongo_db=None, payments: Optional[PaymentsProvider] = None):
        self.mongo_db = mongo_db
        self.payments = payments
        self.bounties = BountyModel(mongo_db)
        self.requests = BountyRequestModel(mongo_db)
        self.conversations = ConversationModel(mongo_db)
        self.messages = MessageModel(mongo_db)
        self.profiles = ProfileModel(mongo_db)
        self.logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Bounties
    # -------------------------------------------------------------------------
    def get_bounty(self, bounty_id) -> Optional[Bounty]:
        return self.bounties.find(normalize_id(bounty_id))

    def list_bounties(self, poster_id=None, status=None, accepted_by=None) -> List[Bounty]:
        return self.bounties.find_many({
            "poster_id": normalize_id(poster_id),
            "status": status,
            "accepted_by": normalize_id(accepted_by),
        })

    def update_bounty_status(self, bounty_id, status, accepted_by=None) -> Optional[Bounty]:
        bounty_id = normalize_id(bounty_id)
        fields = {"status": BountyStatus(status)}
        if accepted_by is not None:
            fields["accepted_by"] = normalize_id(accepted_by)
        if not self.bounties.update(bounty_id, **fields):
            return None
        return self.bounties.find(bounty_id)

    # -------------------------------------------------------------------------
    # Bounty requests
    # -------------------------------------------------------------------------
    def get_request(self, request_id) -> Optional[BountyRequest]:
        return self.requests.find(normalize_id(request_id))

    def list_requests(self, bounty_id=None, status=None, hunter_id=None) -> List[BountyRequest]:
        return self.requests.find_many({
            "bounty_id": normalize_id(bounty_id),
            "status": status,
            "hunter_id": normalize_id(hunter_id),
        })

    def accept_request(self, request_id) -> Optional[BountyRequest]:
        """
        Accept a pending request for an open bounty.

        The bounty is claimed first with a conditional update (status must
        still be open), so of two concurrent acceptances only one wins. If
        the request row cannot be marked accepted afterwards, the bounty
        claim is rolled back.

        With a payments provider configured, a paid bounty has its amount
        held in escrow from the poster; when that fails both rows are put
        back and the acceptance is refused.
        """
        request_id = normalize_id(request_id)
        request = self.requests.find(request_id)
        if request is None:
            self.logger.warning(f"Accept refused: request {request_id} not found")
            return None
        if not request.is_pending():
            self.logger.warning(f"Accept refused: request {request_id} is {request.status}")
            return None

        claimed = self.bounties.update_where(
            {"_id": request.bounty_id, "status": BountyStatus.OPEN},
            status=BountyStatus.IN_PROGRESS,
            accepted_by=request.hunter_id,
        )
        if not claimed:
            self.logger.warning(f"Accept refused: bounty {request.bounty_id} already accepted or not open")
            return None

        accepted = self.requests.update_where(
            {"_id": request_id, "status": BountyRequestStatus.PENDING},
            status=BountyRequestStatus.ACCEPTED,
        )
        if not accepted:
            self.logger.error(f"Failed to mark request {request_id} accepted, rolling back bounty {request.bounty_id}")
            self._release_claim(request)
            return None

        if self.payments is not None:
            try:
                self._hold_escrow(request.bounty_id)
            except (PaymentError, BackendError) as e:
                self.logger.error(f"Escrow failed for bounty {request.bounty_id}, rolling back acceptance: {e}")
                self.requests.update_where(
                    {"_id": request_id, "status": BountyRequestStatus.ACCEPTED},
                    status=BountyRequestStatus.PENDING,
                )
                self._release_claim(request)
                return None

        self.logger.info(f"Bounty request {request_id} accepted for bounty {request.bounty_id}")
        return self.requests.find(request_id)

    def _hold_escrow(self, bounty_id: str):
        bounty = self.bounties.find(bounty_id)
        if bounty is None or not bounty.is_paid():
            return
        escrow_id = self.payments.create_escrow(bounty.id, bounty.amount, bounty.title, bounty.poster_id)
        self.bounties.update(bounty.id, payment_intent_id=escrow_id)

    def _release_claim(self, request: BountyRequest):
        rolled_back = self.bounties.update_where(
            {"_id": request.bounty_id, "accepted_by": request.hunter_id},
            status=BountyStatus.OPEN,
            accepted_by=None,
        )
        if not rolled_back:
            self.logger.error(f"Failed to roll back bounty {request.bounty_id}; manual intervention required")

    def delete_request(self, request_id) -> bool:
        return self.requests.delete(normalize_id(request_id))

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------
    def create_conversation(self, participant_ids: List[str], bounty_id, name: str) -> str:
        participants = [normalize_id(p) for p in participant_ids]
        if not participants or any(p is None for p in participants):
            raise BackendError(BackendErrorCode.CONFLICT, f"Invalid participants: {participant_ids}")
        conversation = Conversation(participant_ids=participants, bounty_id=bounty_id, name=name)
        return self.conversations.create(conversation).id

    def send_message(self, conversation_id, text: str, sender_id) -> Dict[str, Any]:
        conversation_id = normalize_id(conversation_id)
        if self.conversations.find_by_id(conversation_id) is None:
            raise BackendError(BackendErrorCode.NOT_FOUND, f"Conversation {conversation_id} not found")
        message = self.messages.create(Message(conversation_id=conversation_id, sender_id=sender_id, text=text))
        return message.model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------
    def get_profile(self, user_id) -> Profile:
        profile = self.profiles.find(normalize_id(user_id))
        if profile is None:
            raise BackendError(BackendErrorCode.NOT_FOUND, f"Profile {user_id} not found")
        return profile

    def insert_profile(self, profile: Profile) -> Profile:
        return self.profiles.create(profile)

    def update_profile(self, user_id, updates: Dict[str, Any]) -> Profile:
        profile = self.profiles.find_one_and_update(normalize_id(user_id), **updates)
        if profile is None:
            raise BackendError(BackendErrorCode.NOT_FOUND, f"Profile {user_id} not found")
        return profile

    def ping(self) -> bool:
        try:
            return bool(self.bounties.db.command("ping").get("ok"))
        except PyMongoError as e:
            self.logger.warning(f"Mongo ping failed: {e}")
            return False
