"""
Slot state transition validation.

Slot lifecycle: IDLE → RUNNING → COMPLETED | FAILED | CANCELLED → IDLE

A terminal state only ever moves back to IDLE; it never returns to
RUNNING directly. Replacing a running job goes through CANCELLED → IDLE
before the new job's RUNNING.
"""

from typing import FrozenSet, Set, Tuple

from .errors import InvalidStateTransitionError
from .models import SlotState


TERMINAL_SLOT_STATES: FrozenSet[SlotState] = frozenset({
    SlotState.COMPLETED,
    SlotState.FAILED,
    SlotState.CANCELLED,
})


_SLOT_TRANSITIONS: Set[Tuple[SlotState, SlotState]] = {
    (SlotState.IDLE, SlotState.RUNNING),
    (SlotState.RUNNING, SlotState.COMPLETED),
    (SlotState.RUNNING, SlotState.FAILED),
    (SlotState.RUNNING, SlotState.CANCELLED),
    (SlotState.COMPLETED, SlotState.IDLE),
    (SlotState.FAILED, SlotState.IDLE),
    (SlotState.CANCELLED, SlotState.IDLE),
}


def is_terminal(state: SlotState) -> bool:
    return state in TERMINAL_SLOT_STATES


def can_transition(from_state: SlotState, to_state: SlotState) -> bool:
    """
    Check if a slot state transition is legal.

    Args:
        from_state: Current slot state
        to_state: Target slot state

    Returns:
        True if the transition is allowed, False otherwise
    """
    return (from_state, to_state) in _SLOT_TRANSITIONS


def validate_transition(slot: str, from_state: SlotState, to_state: SlotState) -> None:
    """
    Validate a slot state transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition(from_state, to_state):
        raise InvalidStateTransitionError(slot, from_state.value, to_state.value)
