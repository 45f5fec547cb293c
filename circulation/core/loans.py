#!/usr/bin/env python

"""
    Loan Store for Circulation

    Persists loan records. Every call runs in its own session, and every
    mutation is a single UPDATE guarded by the loan's current state so that
    a return and an overdue sweep touching the same row cannot overwrite
    each other.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from typing import List, Optional
from sqlalchemy import case, or_
from sqlalchemy.exc import SQLAlchemyError
from circulation.core.db import get_session_factory, conditional_update, read_session
from circulation.core.exceptions import StoreError
from circulation.core.models import Loan as LoanRow
from circulation.core.status import LoanStatus, INITIAL_STATUS, sources_of
from circulation.core.utils import utcnow, to_utc
from circulation.schemas.loan import Loan

logger = logging.getLogger(__name__)


class LoanStore:

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session_factory()

    @staticmethod
    def _snapshot(row) -> Optional[Loan]:
        return Loan.model_validate(row) if row is not None else None

    def _all(self, *criteria, order_by=None) -> List[Loan]:
        if order_by is None:
            order_by = (LoanRow.borrowed_at.desc(), LoanRow.id.desc())
        with read_session(self.session_factory, LoanRow.__tablename__) as session:
            rows = session.query(LoanRow).filter(*criteria).order_by(*order_by).all()
            return [self._snapshot(row) for row in rows]

    def _count(self, *criteria) -> int:
        with read_session(self.session_factory, LoanRow.__tablename__) as session:
            return session.query(LoanRow).filter(*criteria).count()

    def create(
        self,
        patron_id: int,
        item_id: int,
        due_at: datetime.datetime,
        notes: Optional[str] = None,
        borrowed_at: Optional[datetime.datetime] = None,
    ) -> Loan:
        now = utcnow()
        with self.session_factory() as session:
            row = LoanRow(
                patron_id=patron_id,
                item_id=item_id,
                borrowed_at=to_utc(borrowed_at) if borrowed_at else now,
                due_at=to_utc(due_at),
                status=INITIAL_STATUS,
                fine_paid=False,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            try:
                session.add(row)
                session.commit()
                session.refresh(row)
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(f"Failed to create loan record: {str(e)}.",
                                 patron_id=patron_id, item_id=item_id) from e
            return self._snapshot(row)

    def find_by_id(self, loan_id: int) -> Optional[Loan]:
        with read_session(self.session_factory, LoanRow.__tablename__) as session:
            return self._snapshot(session.get(LoanRow, loan_id))

    def find_by_patron(self, patron_id: int) -> List[Loan]:
        """All loans of a patron, newest first."""
        return self._all(LoanRow.patron_id == patron_id)

    def find_by_item(self, item_id: int) -> List[Loan]:
        return self._all(LoanRow.item_id == item_id)

    def find_open(self) -> List[Loan]:
        return self._all(LoanRow.returned_at.is_(None))

    def find_overdue(self, now: datetime.datetime) -> List[Loan]:
        """Open loans past their due time, oldest due first."""
        return self._all(
            LoanRow.returned_at.is_(None),
            LoanRow.due_at < to_utc(now),
            order_by=(LoanRow.due_at.asc(), LoanRow.id.asc()),
        )

    def mark_returned(self, loan_id: int, returned_at: datetime.datetime,
                      fine_amount: Optional[int] = None) -> bool:
        """Closes the loan at most once. A second call returns False."""
        values = {
            LoanRow.returned_at: to_utc(returned_at),
            LoanRow.status: LoanStatus.RETURNED,
            LoanRow.updated_at: utcnow(),
        }
        if fine_amount is not None:
            # a finalized fine never drops below what the sweep already persisted
            values[LoanRow.fine_amount] = case(
                (LoanRow.fine_amount > fine_amount, LoanRow.fine_amount),
                else_=fine_amount,
            )
        return conditional_update(
            self.session_factory, LoanRow, loan_id,
            (LoanRow.returned_at.is_(None),
             LoanRow.status.in_(sources_of(LoanStatus.RETURNED))),
            values)

    def set_status(self, loan_id: int, status: LoanStatus) -> bool:
        """Moves an open loan to `status` if its current status allows it."""
        status = LoanStatus(status)
        if status is LoanStatus.RETURNED:
            raise ValueError("Returns must go through mark_returned.")
        return conditional_update(
            self.session_factory, LoanRow, loan_id,
            (LoanRow.returned_at.is_(None),
             LoanRow.status.in_(sources_of(status))),
            {LoanRow.status: status, LoanRow.updated_at: utcnow()})

    def set_fine(self, loan_id: int, amount: int) -> bool:
        """Persists a fine on an open, unpaid loan. Refuses to lower it."""
        if amount < 0:
            raise ValueError(f"Fine amount cannot be negative: {amount}")
        return conditional_update(
            self.session_factory, LoanRow, loan_id,
            (LoanRow.returned_at.is_(None),
             LoanRow.fine_paid.is_(False),
             or_(LoanRow.fine_amount.is_(None), LoanRow.fine_amount <= amount)),
            {LoanRow.fine_amount: amount, LoanRow.updated_at: utcnow()})

    def mark_fine_paid(self, loan_id: int) -> bool:
        """Flags the finalized fine of a returned loan as settled."""
        return conditional_update(
            self.session_factory, LoanRow, loan_id,
            (LoanRow.returned_at.isnot(None),
             LoanRow.fine_amount > 0,
             LoanRow.fine_paid.is_(False)),
            {LoanRow.fine_paid: True, LoanRow.updated_at: utcnow()})

    def count_open_by_patron(self, patron_id: int) -> int:
        return self._count(LoanRow.patron_id == patron_id, LoanRow.returned_at.is_(None))

    def count_open_by_item(self, item_id: int) -> int:
        return self._count(LoanRow.item_id == item_id, LoanRow.returned_at.is_(None))

    def count_all(self) -> int:
        return self._count()

    def delete(self, loan_id: int) -> bool:
        """Administrative override; removing a loan is not part of the lifecycle."""
        with self.session_factory() as session:
            try:
                deleted = session.query(LoanRow).filter(LoanRow.id == loan_id).delete(
                    synchronize_session=False)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(f"Failed to delete loan {loan_id}: {str(e)}.", id=loan_id) from e
        if deleted:
            logger.warning(f"Loan {loan_id} deleted by administrative override")
        return deleted > 0
