from typing import Any, Dict

from bountyexpo.backend.models.base_nosql_model import BaseNoSqlModel
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequest


class BountyRequestModel(BaseNoSqlModel):
    """
    MongoDB persistence wrapper for BountyRequest rows.
    Rejected and withdrawn requests are deleted rather than kept.
    """
    collection_name = "bounty_requests"

    def _from_doc(self, doc: Dict[str, Any]) -> BountyRequest:
        return BountyRequest(**self._strip_id(doc))
