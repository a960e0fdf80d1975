"""
Error types shared between the cache layer, the backend adapters and the
request-acceptance workflow.
"""
from enum import Enum
from typing import Optional


class BountyExpoError(Exception):
    """Base class for all errors raised by bountyexpo."""


class OfflineCacheMissError(BountyExpoError):
    """Raised when the device is offline and nothing is cached for a key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("No cached data available and device is offline")


class BountyRequestNotFoundError(BountyExpoError):
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__("Request not found")


class BackendErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    DUPLICATE_KEY = "duplicate_key"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


class BackendError(BountyExpoError):
    """
    Error returned by the remote data backend.
    The `code` field distinguishes "not found", "duplicate key" and
    "permission denied" the same way the hosted backend's error rows do.
    """

    def __init__(self, code: BackendErrorCode, message: Optional[str] = None):
        self.code = BackendErrorCode(code)
        self.message = message or self.code.value
        super().__init__(self.message)

    def __repr__(self):
        return f"BackendError(code={self.code.value!r}, message={self.message!r})"


class PaymentError(BountyExpoError):
    """Raised by a payments provider when escrow cannot be created or refunded."""
