import pytest

from milkypay.enums import EscrowState
from milkypay.errors import AlreadyResolved
from milkypay.state_machine import state_of, validate_transition


def test_valid_transition():
    validate_transition(EscrowState.UNRESOLVED, EscrowState.RESOLVED)


def test_resolved_is_terminal():
    with pytest.raises(AlreadyResolved):
        validate_transition(EscrowState.RESOLVED, EscrowState.RESOLVED)
    with pytest.raises(AlreadyResolved):
        validate_transition(EscrowState.RESOLVED, EscrowState.UNRESOLVED)


def test_state_follows_claimed_flag():
    assert state_of(False) == EscrowState.UNRESOLVED
    assert state_of(True) == EscrowState.RESOLVED
