#!/usr/bin/env python

"""
    Loan status state machine

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
from circulation.core.exceptions import IllegalTransitionError


class LoanStatus(enum.Enum):
    BORROWED = 'borrowed'
    OVERDUE = 'overdue'
    RETURNED = 'returned'
    LOST = 'lost'


TRANSITIONS = {
    LoanStatus.BORROWED: frozenset({LoanStatus.OVERDUE, LoanStatus.RETURNED, LoanStatus.LOST}),
    LoanStatus.OVERDUE: frozenset({LoanStatus.RETURNED, LoanStatus.LOST}),
    LoanStatus.RETURNED: frozenset(),
    LoanStatus.LOST: frozenset(),
}

INITIAL_STATUS = LoanStatus.BORROWED


def is_terminal(status: LoanStatus) -> bool:
    return not TRANSITIONS[LoanStatus(status)]


def can_transition(current: LoanStatus, target: LoanStatus) -> bool:
    return LoanStatus(target) in TRANSITIONS[LoanStatus(current)]


def sources_of(target: LoanStatus) -> list:
    """Statuses from which `target` may be reached."""
    target = LoanStatus(target)
    return [status for status, targets in TRANSITIONS.items() if target in targets]


def assert_transition(current: LoanStatus, target: LoanStatus):
    if not can_transition(current, target):
        raise IllegalTransitionError(
            f"Loan cannot move from {LoanStatus(current).value} to {LoanStatus(target).value}.",
            current=LoanStatus(current).value, target=LoanStatus(target).value)
