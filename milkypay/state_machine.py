from __future__ import annotations

from typing import Dict, Set

from milkypay.enums import EscrowState
from milkypay.errors import AlreadyResolved


ALLOWED_TRANSITIONS: Dict[EscrowState, Set[EscrowState]] = {
    EscrowState.UNRESOLVED: {EscrowState.RESOLVED},
    EscrowState.RESOLVED: set(),
}


def state_of(claimed: bool) -> EscrowState:
    return EscrowState.RESOLVED if claimed else EscrowState.UNRESOLVED


def validate_transition(current: EscrowState, target: EscrowState) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise AlreadyResolved(f"Invalid transition {current.value} -> {target.value}")
