"""
Period lifecycle transition table.

Responsibility:
    The single definition of which lifecycle actions are legal from which
    state, shared by accounting periods and fiscal years.  PeriodService
    consults it before issuing any compare-and-set update.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    OPEN   --close-->    CLOSED
    CLOSED --reopen-->   OPEN
    CLOSED --finalize--> CLOSED_FINAL   (terminal)
    Anything else raises a subclass of InvalidStateTransitionError.

Non-goals:
    Reopening an already-OPEN period is not a transition; PeriodService
    treats it as a visibility re-sync before ever reaching this table.
"""

from enum import Enum

from ledger_kernel.exceptions import (
    CannotReopenFinalizedError,
    InvalidStateTransitionError,
    PeriodAlreadyClosedError,
)
from ledger_kernel.models.fiscal_period import PeriodState


class LifecycleAction(str, Enum):
    CLOSE = "close"
    REOPEN = "reopen"
    FINALIZE = "finalize"


_TRANSITIONS: dict[tuple[PeriodState, LifecycleAction], PeriodState] = {
    (PeriodState.OPEN, LifecycleAction.CLOSE): PeriodState.CLOSED,
    (PeriodState.CLOSED, LifecycleAction.REOPEN): PeriodState.OPEN,
    (PeriodState.CLOSED, LifecycleAction.FINALIZE): PeriodState.CLOSED_FINAL,
}


def is_transition_allowed(current: PeriodState | str, action: LifecycleAction) -> bool:
    return (PeriodState(current), action) in _TRANSITIONS


def next_state(
    current: PeriodState | str,
    action: LifecycleAction,
    target_id: str,
) -> PeriodState:
    """
    Resolve the state reached by applying ``action`` in ``current``.

    Raises:
        PeriodAlreadyClosedError: close from CLOSED or CLOSED_FINAL.
        CannotReopenFinalizedError: reopen from CLOSED_FINAL.
        InvalidStateTransitionError: any other illegal pair.
    """
    state = PeriodState(current)
    try:
        return _TRANSITIONS[(state, action)]
    except KeyError:
        if action == LifecycleAction.CLOSE:
            raise PeriodAlreadyClosedError(target_id, state.value) from None
        if action == LifecycleAction.REOPEN and state == PeriodState.CLOSED_FINAL:
            raise CannotReopenFinalizedError(target_id) from None
        raise InvalidStateTransitionError(target_id, state.value, action.value) from None


def source_state(action: LifecycleAction) -> PeriodState:
    """The only state from which ``action`` is legal."""
    return next(state for state, act in _TRANSITIONS if act == action)


def allows_entries(state: PeriodState | str) -> bool:
    """Entries are accepted only while OPEN."""
    return PeriodState(state) == PeriodState.OPEN
