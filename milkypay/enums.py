from enum import Enum


class EscrowState(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"


class EventTopic(str, Enum):
    ESCROW_CREATED = "EscrowCreated"
    ESCROW_CLAIMED = "EscrowClaimed"
    ESCROW_REFUNDED = "EscrowRefunded"


class ContractFunction(str, Enum):
    CREATE_ESCROW = "create_escrow"
    CLAIM_ESCROW = "claim_escrow"
    REFUND_ESCROW = "refund_escrow"
