"""
Board Loader

Loads a viewer's request board from the backend through the data cache.
Screens read with stale-while-revalidate; reconciliation after a mutation
forces a refresh so the lists come from the source of truth.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from bountyexpo.backend.modules.bounty.models.request_board import RequestBoard
from bountyexpo.shared.modules.bounty.bounty_backend import BountyBackend
from bountyexpo.shared.modules.bounty.enums.bounty_request_status_enum import BountyRequestStatus
from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequest, BountyRequestWithDetails
from bountyexpo.shared.modules.bounty.models.profile import Profile
from bountyexpo.shared.modules.cache.cache_keys import CacheKeys
from bountyexpo.shared.modules.cache.cached_data_service import CachedDataService, dump_models
from bountyexpo.shared.modules.errors import BackendError, OfflineCacheMissError
from bountyexpo.shared.modules.log.logger import get_logger

HIDDEN_STATUSES = (BountyStatus.ARCHIVED, BountyStatus.DELETED)


class BoardLoader:
    def __init__(self, backend: BountyBackend, cache: CachedDataService, max_workers: int = 8):
        self.backend = backend
        self.cache = cache
        self.max_workers = max_workers
        self.logger = get_logger(self.__class__.__name__)

    def load_board(self, viewer_id: str, force_refresh: bool = False) -> RequestBoard:
        board = RequestBoard(viewer_id=viewer_id)
        self.reload(board, force_refresh=force_refresh)
        return board

    def reload(self, board: RequestBoard, include_requests: bool = True, force_refresh: bool = True) -> None:
        """
        Reload every list of the board. Each list is loaded independently;
        a failing loader is logged and leaves its list as it was.
        """
        try:
            self.load_my_bounties(board, force_refresh=force_refresh)
        except Exception as e:
            self.logger.error(f"Failed to reload my bounties for {board.viewer_id}: {e}")
        try:
            self.load_in_progress(board, force_refresh=force_refresh)
        except Exception as e:
            self.logger.error(f"Failed to reload in-progress bounties for {board.viewer_id}: {e}")
        if include_requests:
            try:
                self.load_requests_for_bounties(board, board.my_bounties, force_refresh=force_refresh)
            except Exception as e:
                self.logger.error(f"Failed to reload requests for {board.viewer_id}: {e}")

    def load_my_bounties(self, board: RequestBoard, force_refresh: bool = True) -> List[Bounty]:
        data = self.cache.fetch_with_cache(
            CacheKeys.my_bounties(board.viewer_id),
            lambda: dump_models(self.backend.list_bounties(poster_id=board.viewer_id)),
            force_refresh=force_refresh,
        )
        board.my_bounties = [b for b in (Bounty(**d) for d in data) if b.status not in HIDDEN_STATUSES]
        return board.my_bounties

    def load_in_progress(self, board: RequestBoard, force_refresh: bool = True) -> List[Bounty]:
        data = self.cache.fetch_with_cache(
            CacheKeys.in_progress(board.viewer_id),
            lambda: dump_models(self.backend.list_bounties(accepted_by=board.viewer_id, status=BountyStatus.IN_PROGRESS)),
            force_refresh=force_refresh,
        )
        board.in_progress_bounties = [Bounty(**d) for d in data]
        return board.in_progress_bounties

    def load_requests_for_bounties(self, board: RequestBoard, bounties: List[Bounty], force_refresh: bool = True) -> List[BountyRequestWithDetails]:
        """
        Fetch pending requests for every bounty in parallel, flatten them and
        join each with its bounty and the hunter's profile.
        """
        if not bounties:
            board.bounty_requests = []
            return board.bounty_requests

        def fetch(bounty: Bounty) -> List[BountyRequest]:
            data = self.cache.fetch_with_cache(
                CacheKeys.bounty_requests(bounty.id),
                lambda: dump_models(self.backend.list_requests(bounty_id=bounty.id, status=BountyRequestStatus.PENDING)),
                force_refresh=force_refresh,
            )
            return [BountyRequest(**d) for d in data]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(bounties))) as pool:
            per_bounty = list(pool.map(fetch, bounties))

        bounty_map: Dict[str, Bounty] = {b.id: b for b in bounties}
        requests = [r for batch in per_bounty for r in batch]
        profiles = self._profiles_for({r.hunter_id for r in requests if r.hunter_id})

        board.bounty_requests = [
            BountyRequestWithDetails(
                **r.model_dump(),
                bounty=bounty_map.get(r.bounty_id),
                profile=profiles.get(r.hunter_id),
            )
            for r in requests
        ]
        return board.bounty_requests

    def _profiles_for(self, user_ids) -> Dict[str, Profile]:
        profiles = {}
        for user_id in user_ids:
            profile = self._load_profile(user_id)
            if profile:
                profiles[user_id] = profile
        return profiles

    def _load_profile(self, user_id: str) -> Optional[Profile]:
        try:
            data = self.cache.fetch_with_cache(
                CacheKeys.user_profile(user_id),
                lambda: self.backend.get_profile(user_id).model_dump(mode="json"),
            )
            return Profile(**data)
        except (BackendError, OfflineCacheMissError) as e:
            self.logger.warning(f"Profile {user_id} unavailable: {e}")
            return None
