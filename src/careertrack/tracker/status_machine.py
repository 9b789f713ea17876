"""Application status pipeline.

Single source of truth for which status transitions are legal. The pipeline
is linear and non-skippable so that every stage an application passes through
leaves a ``status_change`` event behind for the analytics replay:

    Applied -> OA -> Interview -> Offer -> Accepted | Rejected
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Tuple, Union

from careertrack.core.errors import TransitionError, TransitionErrorKind
from careertrack.core.models import ApplicationStatus

StatusLike = Union[ApplicationStatus, str]

APPLICATION_STATUSES: Tuple[ApplicationStatus, ...] = tuple(ApplicationStatus)

VALID_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.APPLIED: frozenset({ApplicationStatus.OA}),
    ApplicationStatus.OA: frozenset({ApplicationStatus.INTERVIEW}),
    ApplicationStatus.INTERVIEW: frozenset({ApplicationStatus.OFFER}),
    ApplicationStatus.OFFER: frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.ACCEPTED: frozenset(),  # terminal
    ApplicationStatus.REJECTED: frozenset(),  # terminal
}


def parse_status(value: Optional[StatusLike]) -> Optional[ApplicationStatus]:
    """Return the matching status, or None for anything unrecognised."""
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        return None


def is_valid_status(value: Optional[StatusLike]) -> bool:
    return parse_status(value) is not None


def valid_next_statuses(current: Optional[StatusLike]) -> FrozenSet[ApplicationStatus]:
    status = parse_status(current)
    if status is None:
        return frozenset()
    return VALID_TRANSITIONS[status]


def is_terminal(status: Optional[StatusLike]) -> bool:
    parsed = parse_status(status)
    if parsed is None:
        return False
    return not VALID_TRANSITIONS[parsed]


def can_transition(current: Optional[StatusLike], target: Optional[StatusLike]) -> bool:
    parsed = parse_status(target)
    return parsed is not None and parsed in valid_next_statuses(current)


def _text(value: Optional[StatusLike]) -> str:
    if isinstance(value, ApplicationStatus):
        return value.value
    return "" if value is None else str(value)


def transition_error(current: Optional[StatusLike], target: Optional[StatusLike]) -> Optional[TransitionError]:
    """
    Description: Classify why `current -> target` is not allowed.
    Layer: L1
    Input: current + target status (enum or raw text)
    Output: None when legal, else TransitionError with its kind
    """
    cur, tgt = parse_status(current), parse_status(target)
    cur_text, tgt_text = _text(current), _text(target)

    def _err(kind: TransitionErrorKind, message: str) -> TransitionError:
        return TransitionError(kind=kind, current=cur_text, target=tgt_text, message=message)

    if cur is None:
        return _err(TransitionErrorKind.UNKNOWN_CURRENT, f"Invalid current status: {cur_text}")
    if tgt is None:
        return _err(TransitionErrorKind.UNKNOWN_TARGET, f"Invalid target status: {tgt_text}")
    if cur == tgt:
        return _err(TransitionErrorKind.NO_OP, "Status is already set to this value")

    allowed = VALID_TRANSITIONS[cur]
    if not allowed:
        return _err(
            TransitionErrorKind.TERMINAL,
            f'Cannot change status from "{cur.value}" - this is a final state',
        )
    if tgt not in allowed:
        options = " or ".join(s.value for s in APPLICATION_STATUSES if s in allowed)
        return _err(
            TransitionErrorKind.ILLEGAL_SKIP,
            f'Cannot transition from "{cur.value}" to "{tgt.value}". Valid next status: {options}',
        )
    return None
