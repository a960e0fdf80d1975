from enum import Enum


class AcceptanceStatus(str, Enum):
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    FAILED = "failed"


class AcceptanceErrorCode(str, Enum):
    REQUEST_NOT_FOUND = "request_not_found"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    REMOTE_REJECTED = "remote_rejected"
    UNEXPECTED = "unexpected"
