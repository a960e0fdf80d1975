from enum import Enum

class EscrowStatus(str, Enum):
    HELD = "held"
    REFUNDED = "refunded"
    RELEASED = "released"
