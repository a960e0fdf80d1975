"""
Payments Provider Interface

Escrow is triggered from the acceptance path and either succeeds or raises;
payment state beyond that belongs to the provider.
"""
from abc import ABC, abstractmethod


class PaymentsProvider(ABC):

    @abstractmethod
    def create_escrow(self, bounty_id, amount: float, title: str, user_id) -> str:
        """
        Hold `amount` from `user_id` for the bounty and return the escrow id.
        Raises PaymentError when the funds cannot be held.
        """
        pass

    @abstractmethod
    def refund_escrow(self, escrow_id) -> bool:
        """Return held funds to the poster. False when nothing was held."""
        pass
