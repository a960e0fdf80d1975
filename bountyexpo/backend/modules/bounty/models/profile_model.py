from typing import Any, Dict

from bountyexpo.backend.models.base_nosql_model import BaseNoSqlModel
from bountyexpo.shared.modules.bounty.models.profile import Profile


class ProfileModel(BaseNoSqlModel):
    collection_name = "profiles"

    def _from_doc(self, doc: Dict[str, Any]) -> Profile:
        return Profile(**self._strip_id(doc))
