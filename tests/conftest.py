"""
Shared fixtures: an in-memory backend, a memory cache store, a static
network monitor, and a board factory wired through the real loader.
"""
import os
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

os.environ.setdefault("CACHE_BACKEND", "memory")

from bountyexpo.backend.modules.bounty.services.board_loader import BoardLoader
from bountyexpo.backend.modules.bounty.services.request_acceptance_service import RequestAcceptanceService
from bountyexpo.backend.modules.messaging.local_message_service import LocalMessageService
from bountyexpo.backend.modules.notification.notification_dispatcher import NotificationDispatcher
from bountyexpo.shared.modules.bounty.bounty_backend import BountyBackend
from bountyexpo.shared.modules.bounty.enums.bounty_request_status_enum import BountyRequestStatus
from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.ids import normalize_id
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequest
from bountyexpo.shared.modules.bounty.models.profile import Profile
from bountyexpo.shared.modules.cache.cached_data_service import CachedDataService
from bountyexpo.shared.modules.cache.memory_cache_store import MemoryCacheStore
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode
from bountyexpo.shared.modules.log.error_reporter import ErrorReporter
from bountyexpo.shared.modules.network.network_monitor import NetworkMonitor


class FakeBackend(BountyBackend):
    """
    In-memory BountyBackend. Set `failures[method] = exc` to make a method
    raise, or `refuse_accept = True` to make accept_request return None.
    """

    def __init__(self):
        self.bounties: Dict[str, Bounty] = {}
        self.requests: Dict[str, BountyRequest] = {}
        self.profiles: Dict[str, Profile] = {}
        self.conversations: Dict[str, Dict[str, Any]] = {}
        self.messages: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.refuse_accept = False
        self.online = True

    def _call(self, name: str):
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    # seeding helpers
    def add_bounty(self, **fields) -> Bounty:
        bounty = Bounty(**fields)
        self.bounties[bounty.id] = bounty
        return bounty

    def add_request(self, **fields) -> BountyRequest:
        request = BountyRequest(**fields)
        self.requests[request.id] = request
        return request

    def add_profile(self, **fields) -> Profile:
        profile = Profile(**fields)
        self.profiles[profile.id] = profile
        return profile

    def get_bounty(self, bounty_id) -> Optional[Bounty]:
        self._call("get_bounty")
        return self.bounties.get(normalize_id(bounty_id))

    def list_bounties(self, poster_id=None, status=None, accepted_by=None) -> List[Bounty]:
        self._call("list_bounties")
        return [
            b for b in self.bounties.values()
            if (poster_id is None or b.poster_id == normalize_id(poster_id))
            and (status is None or b.status == BountyStatus(status).value)
            and (accepted_by is None or b.accepted_by == normalize_id(accepted_by))
        ]

    def update_bounty_status(self, bounty_id, status, accepted_by=None) -> Optional[Bounty]:
        self._call("update_bounty_status")
        bounty = self.bounties.get(normalize_id(bounty_id))
        if bounty is None:
            return None
        bounty = bounty.with_status(status, accepted_by=normalize_id(accepted_by))
        self.bounties[bounty.id] = bounty
        return bounty

    def get_request(self, request_id) -> Optional[BountyRequest]:
        self._call("get_request")
        return self.requests.get(normalize_id(request_id))

    def list_requests(self, bounty_id=None, status=None, hunter_id=None) -> List[BountyRequest]:
        self._call("list_requests")
        return [
            r for r in self.requests.values()
            if (bounty_id is None or r.bounty_id == normalize_id(bounty_id))
            and (status is None or r.status == BountyRequestStatus(status).value)
            and (hunter_id is None or r.hunter_id == normalize_id(hunter_id))
        ]

    def accept_request(self, request_id) -> Optional[BountyRequest]:
        self._call("accept_request")
        request = self.requests.get(normalize_id(request_id))
        if self.refuse_accept or request is None or not request.is_pending():
            return None
        bounty = self.bounties.get(request.bounty_id)
        if bounty is None or not bounty.is_open():
            return None
        self.bounties[bounty.id] = bounty.with_status(BountyStatus.IN_PROGRESS, accepted_by=request.hunter_id)
        request = request.model_copy(update={"status": BountyRequestStatus.ACCEPTED.value})
        self.requests[request.id] = request
        return request

    def delete_request(self, request_id) -> bool:
        self._call("delete_request")
        return self.requests.pop(normalize_id(request_id), None) is not None

    def create_conversation(self, participant_ids, bounty_id, name) -> str:
        self._call("create_conversation")
        conversation_id = f"conv-{len(self.conversations) + 1}"
        self.conversations[conversation_id] = {
            "participant_ids": list(participant_ids),
            "bounty_id": bounty_id,
            "name": name,
        }
        return conversation_id

    def send_message(self, conversation_id, text, sender_id) -> Dict[str, Any]:
        self._call("send_message")
        message = {"conversation_id": conversation_id, "text": text, "sender_id": sender_id}
        self.messages.append(message)
        return message

    def get_profile(self, user_id) -> Profile:
        self._call("get_profile")
        profile = self.profiles.get(normalize_id(user_id))
        if profile is None:
            raise BackendError(BackendErrorCode.NOT_FOUND, f"Profile {user_id} not found")
        return profile

    def insert_profile(self, profile: Profile) -> Profile:
        self._call("insert_profile")
        if profile.id in self.profiles:
            raise BackendError(BackendErrorCode.DUPLICATE_KEY, "duplicate key")
        self.profiles[profile.id] = profile
        return profile

    def update_profile(self, user_id, updates) -> Profile:
        self._call("update_profile")
        profile = self.profiles.get(normalize_id(user_id))
        if profile is None:
            raise BackendError(BackendErrorCode.NOT_FOUND, f"Profile {user_id} not found")
        profile = profile.model_copy(update=updates)
        self.profiles[profile.id] = profile
        return profile

    def ping(self) -> bool:
        return self.online


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def network() -> NetworkMonitor:
    return NetworkMonitor(online=True)


@pytest.fixture
def cache(store, network) -> CachedDataService:
    service = CachedDataService(store, network_monitor=network, run_in_background=False)
    yield service
    service.close()


@pytest.fixture
def loader(backend, cache) -> BoardLoader:
    return BoardLoader(backend, cache, max_workers=2)


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock(spec=NotificationDispatcher)


@pytest.fixture
def error_reporter() -> ErrorReporter:
    return ErrorReporter()


@pytest.fixture
def local_messages(store) -> LocalMessageService:
    return LocalMessageService(store)


@pytest.fixture
def acceptance_service(backend, loader, local_messages, notifier, error_reporter) -> RequestAcceptanceService:
    return RequestAcceptanceService(
        backend,
        loader,
        local_messages,
        notifier=notifier,
        error_reporter=error_reporter,
    )


@pytest.fixture
def marketplace(backend):
    """
    Poster "poster-1" with a paid open bounty "b-1" ($50) that has two
    pending requests from two hunters.
    """
    backend.add_profile(id="poster-1", username="poster", balance=100)
    backend.add_profile(id="hunter-1", username="alice")
    backend.add_profile(id="hunter-2", username="bob")
    backend.add_bounty(id="b-1", title="Fix the fence", amount=50.0, poster_id="poster-1")
    backend.add_request(id="r-1", bounty_id="b-1", hunter_id="hunter-1", poster_id="poster-1")
    backend.add_request(id="r-2", bounty_id="b-1", hunter_id="hunter-2", poster_id="poster-1")
    return backend


@pytest.fixture
def board_factory(loader):
    def make(viewer_id: str = "poster-1"):
        return loader.load_board(viewer_id, force_refresh=True)
    return make
