from typing import Any, Dict, Optional

from bountyexpo.backend.models.base_nosql_model import BaseNoSqlModel, translate_errors
from bountyexpo.shared.modules.payments.enums.escrow_status_enum import EscrowStatus
from bountyexpo.shared.modules.payments.models.escrow import Escrow


class EscrowModel(BaseNoSqlModel):
    collection_name = "escrows"

    def find_held_for_bounty(self, bounty_id: str) -> Optional[Escrow]:
        with translate_errors():
            doc = self.collection.find_one({"bounty_id": bounty_id, "status": EscrowStatus.HELD.value})
        return self._from_doc(doc) if doc else None

    def _from_doc(self, doc: Dict[str, Any]) -> Escrow:
        return Escrow(**self._strip_id(doc))
