#!/usr/bin/env python

"""
    Overdue fine calculation for Circulation

    A fine accrues DAILY_FINE_RATE minor currency units for every full day a
    loan is past due. Partial days do not count, there is no grace period and
    no ceiling. Once a loan is returned its fine is final and is read back
    from the loan rather than recomputed.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
from circulation.configs import DAILY_FINE_RATE
from circulation.core.utils import to_utc

ONE_DAY = datetime.timedelta(days=1)


def overdue_days(loan, now: datetime.datetime) -> int:
    """Whole days between the loan's due time and `now`, 0 if not yet due."""
    due_at = to_utc(loan.due_at)
    now = to_utc(now)
    if now <= due_at:
        return 0
    return (now - due_at) // ONE_DAY


def compute_fine(loan, now: datetime.datetime, daily_rate: int = DAILY_FINE_RATE) -> int:
    if loan.returned_at is not None:
        return loan.fine_amount or 0
    return overdue_days(loan, now) * daily_rate
