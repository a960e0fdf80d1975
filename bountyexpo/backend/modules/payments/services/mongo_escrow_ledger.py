"""
Escrow held on the poster's wallet balance in MongoDB.

Creating an escrow debits the poster's profile balance with a conditional
`$inc` (the balance must cover the amount) and records an escrow row; a
refund credits the balance back and marks the row refunded.
"""
from bountyexpo.backend.modules.bounty.models.profile_model import ProfileModel
from bountyexpo.backend.modules.payments.models.escrow_model import EscrowModel
from bountyexpo.shared.modules.bounty.ids import normalize_id
from bountyexpo.shared.modules.errors import BackendError, PaymentError
from bountyexpo.shared.modules.log.logger import get_logger
from bountyexpo.shared.modules.payments.enums.escrow_status_enum import EscrowStatus
from bountyexpo.shared.modules.payments.models.escrow import Escrow
from bountyexpo.shared.modules.payments.payments_provider import PaymentsProvider


class MongoEscrowLedger(PaymentsProvider):

    def __init__(self, mongo_db=None):
        self.escrows = EscrowModel(mongo_db)
        self.profiles = ProfileModel(mongo_db)
        self.logger = get_logger(self.__class__.__name__)

    def create_escrow(self, bounty_id, amount: float, title: str, user_id) -> str:
        bounty_id, user_id = normalize_id(bounty_id), normalize_id(user_id)
        if amount <= 0:
            raise PaymentError("Escrow amount must be positive")
        if self.escrows.find_held_for_bounty(bounty_id) is not None:
            raise PaymentError(f"Escrow already exists for bounty {bounty_id}")

        debited = self.profiles.increment_where(
            {"_id": user_id, "balance": {"$gte": amount}},
            balance=-amount,
        )
        if not debited:
            raise PaymentError(f"Insufficient balance to hold ${amount:.2f} for bounty {bounty_id}")

        try:
            escrow = self.escrows.create(Escrow(bounty_id=bounty_id, poster_id=user_id, amount=amount, title=title))
        except BackendError as e:
            self.logger.error(f"Failed to record escrow for bounty {bounty_id}, crediting {user_id} back: {e}")
            self.profiles.increment_where({"_id": user_id}, balance=amount)
            raise PaymentError(f"Failed to record escrow for bounty {bounty_id}") from e

        self.logger.info(f"Escrow {escrow.id}: ${amount:.2f} held from {user_id} for bounty {bounty_id}")
        return escrow.id

    def refund_escrow(self, escrow_id) -> bool:
        escrow = self.escrows.find(normalize_id(escrow_id))
        if escrow is None:
            return False
        # Only a held escrow can move to refunded, so a repeated refund credits nothing
        if not self.escrows.update_where({"_id": escrow.id, "status": EscrowStatus.HELD}, status=EscrowStatus.REFUNDED):
            self.logger.warning(f"Escrow {escrow.id} is {escrow.status}, nothing to refund")
            return False
        self.profiles.increment_where({"_id": escrow.poster_id}, balance=escrow.amount)
        self.logger.info(f"Escrow {escrow.id} refunded: ${escrow.amount:.2f} to {escrow.poster_id}")
        return True
