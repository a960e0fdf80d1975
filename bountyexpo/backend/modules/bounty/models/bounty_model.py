from typing import Any, Dict

from bountyexpo.backend.models.base_nosql_model import BaseNoSqlModel
from bountyexpo.shared.modules.bounty.models.bounty import Bounty


class BountyModel(BaseNoSqlModel):
    """
    MongoDB persistence wrapper for Bounty rows.
    """
    collection_name = "bounties"

    def _from_doc(self, doc: Dict[str, Any]) -> Bounty:
        return Bounty(**self._strip_id(doc))
