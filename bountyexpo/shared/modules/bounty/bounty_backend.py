"""
Bounty Backend Interface

Contract of the remote data backend as consumed by the cache loaders, the
request-acceptance workflow and the profile store: row-level CRUD plus a
stored-procedure style call for conversation creation. Failures surface as
BackendError with a `code`, or as a falsy return where noted.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequest
from bountyexpo.shared.modules.bounty.models.profile import Profile


class BountyBackend(ABC):

    # --- bounties ---
    @abstractmethod
    def get_bounty(self, bounty_id) -> Optional[Bounty]:
        pass

    @abstractmethod
    def list_bounties(self, poster_id=None, status: Optional[BountyStatus] = None, accepted_by=None) -> List[Bounty]:
        pass

    @abstractmethod
    def update_bounty_status(self, bounty_id, status: BountyStatus, accepted_by=None) -> Optional[Bounty]:
        """Returns the updated row, or None when nothing was updated."""
        pass

    # --- bounty requests ---
    @abstractmethod
    def get_request(self, request_id) -> Optional[BountyRequest]:
        pass

    @abstractmethod
    def list_requests(self, bounty_id=None, status=None, hunter_id=None) -> List[BountyRequest]:
        pass

    @abstractmethod
    def accept_request(self, request_id) -> Optional[BountyRequest]:
        """
        Accept a request. Returns the accepted row, or None when the backend
        refused (request missing, not pending, or bounty already accepted).
        """
        pass

    @abstractmethod
    def delete_request(self, request_id) -> bool:
        pass

    # --- messaging ---
    @abstractmethod
    def create_conversation(self, participant_ids: List[str], bounty_id, name: str) -> str:
        """Create a conversation server-side and return its id."""
        pass

    @abstractmethod
    def send_message(self, conversation_id, text: str, sender_id) -> Dict[str, Any]:
        pass

    # --- profiles ---
    @abstractmethod
    def get_profile(self, user_id) -> Profile:
        """Raises BackendError(NOT_FOUND) when the profile row is missing."""
        pass

    @abstractmethod
    def insert_profile(self, profile: Profile) -> Profile:
        """Raises BackendError(DUPLICATE_KEY) when the row already exists."""
        pass

    @abstractmethod
    def update_profile(self, user_id, updates: Dict[str, Any]) -> Profile:
        pass

    @abstractmethod
    def ping(self) -> bool:
        pass
