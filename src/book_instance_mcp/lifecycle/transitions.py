"""
Transition table for book instance statuses.

The table maps ``(current, target)`` to a rule describing the write:
whether the target keeps a holder, whether a reader must be supplied
(and whether it must be the current holder), and whether the due date
comes from the ``MaxLoanDuration`` policy. A pair absent from the table
is a conflict.

    Reserved    -> Loaned (holder only), Available
    Loaned      -> Available, Maintenance
    Available   -> Loaned (any reader), Maintenance
    Maintenance -> Available
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict

from ..models.instance import InstanceStatus

A = InstanceStatus.AVAILABLE
L = InstanceStatus.LOANED
R = InstanceStatus.RESERVED
M = InstanceStatus.MAINTENANCE


class ReaderRequirement(str, Enum):
    """What the request must say about the reader."""

    NONE = "none"
    ANY = "any"
    CURRENT_HOLDER = "current_holder"


class TransitionRule(BaseModel):
    """Effect descriptor for one allowed ``(current, target)`` pair."""

    model_config = ConfigDict(frozen=True)

    current: InstanceStatus
    target: InstanceStatus
    reader: ReaderRequirement = ReaderRequirement.NONE
    uses_loan_policy: bool = False


def _rule(current, target, **kwargs) -> tuple[tuple[InstanceStatus, InstanceStatus], TransitionRule]:
    return (current, target), TransitionRule(current=current, target=target, **kwargs)


TRANSITION_TABLE: dict[tuple[InstanceStatus, InstanceStatus], TransitionRule] = dict(
    [
        _rule(R, L, reader=ReaderRequirement.CURRENT_HOLDER, uses_loan_policy=True),
        _rule(R, A),
        _rule(L, A),
        _rule(L, M),
        _rule(A, M),
        _rule(A, L, reader=ReaderRequirement.ANY, uses_loan_policy=True),
        _rule(M, A),
    ]
)


def lookup_rule(current: InstanceStatus, target: InstanceStatus) -> TransitionRule | None:
    """Return the rule for a pair, or None when the pair is not allowed."""
    return TRANSITION_TABLE.get((current, target))


def allowed_targets(current: InstanceStatus) -> list[InstanceStatus]:
    """Targets reachable from ``current``, in table order."""
    return [target for (source, target) in TRANSITION_TABLE if source == current]


def utc_today() -> date:
    """Calendar date in UTC, the single day basis used for due dates and expiry."""
    return datetime.now(UTC).date()


Clock = Callable[[], date]


def compute_due_date(today: date, loan_days: int) -> date:
    """Due date for a loan starting ``today``.

    Raises:
        ValueError: If the policy value is negative
    """
    if loan_days < 0:
        raise ValueError(f"Loan duration cannot be negative: {loan_days}")
    return today + timedelta(days=loan_days)
