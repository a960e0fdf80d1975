from typing import List, Optional

from pydantic import BaseModel, Field

from bountyexpo.shared.modules.bounty.ids import Id, same_id
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequestWithDetails


class LoadingState(BaseModel):
    requests: bool = False
    my_bounties: bool = False
    in_progress: bool = False

    def set_all(self, value: bool):
        self.requests = self.my_bounties = self.in_progress = value


class RequestBoard(BaseModel):
    """
    One viewer's view of the marketplace: pending requests on their
    postings, their postings, and the bounties they are working on.
    """
    viewer_id: Id
    bounty_requests: List[BountyRequestWithDetails] = Field(default_factory=list)
    my_bounties: List[Bounty] = Field(default_factory=list)
    in_progress_bounties: List[Bounty] = Field(default_factory=list)
    loading: LoadingState = Field(default_factory=LoadingState)
    error: Optional[str] = None
    show_add_money: bool = False

    def find_request(self, request_id) -> Optional[BountyRequestWithDetails]:
        return next((r for r in self.bounty_requests if same_id(r.id, request_id)), None)

    def find_my_bounty(self, bounty_id) -> Optional[Bounty]:
        return next((b for b in self.my_bounties if same_id(b.id, bounty_id)), None)
