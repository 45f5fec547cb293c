#!/usr/bin/env python

"""
    Loan Orchestrator for Circulation

    Coordinates the Patron Directory, the Catalog and the Loan Store through
    borrow, return and the overdue sweep. The copy counter and the loan
    record are committed separately; each step is individually guarded, and
    a failure between the two steps is raised as an InconsistencyError for
    out-of-band reconciliation instead of being compensated here.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from typing import Callable, List, Optional
from circulation.configs import BORROW_LIMIT, DAILY_FINE_RATE, DEFAULT_LOAN_PERIOD_DAYS
from circulation.core.catalog import Catalog
from circulation.core.exceptions import (
    AlreadyReturnedError,
    BookUnavailableError,
    BorrowLimitError,
    ConflictError,
    InconsistencyError,
    InvalidStateError,
    ItemNotFoundError,
    LoanNotFoundError,
    NotFoundError,
    PatronInactiveError,
    PatronNotFoundError,
)
from circulation.core.fines import compute_fine
from circulation.core.loans import LoanStore
from circulation.core.patrons import PatronDirectory
from circulation.core.status import LoanStatus, assert_transition, is_terminal
from circulation.core.utils import utcnow, to_utc
from circulation.schemas.loan import Loan
from circulation.schemas.reconciliation import ReconciliationReport, SweepFailure

logger = logging.getLogger(__name__)


class LoanOrchestrator:

    def __init__(
        self,
        patrons: PatronDirectory,
        catalog: Catalog,
        loans: LoanStore,
        borrow_limit: int = BORROW_LIMIT,
        daily_fine_rate: int = DAILY_FINE_RATE,
        default_loan_period_days: int = DEFAULT_LOAN_PERIOD_DAYS,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self.patrons = patrons
        self.catalog = catalog
        self.loans = loans
        self.borrow_limit = borrow_limit
        self.daily_fine_rate = daily_fine_rate
        self.default_loan_period_days = default_loan_period_days
        self.clock = clock

    @classmethod
    def from_session_factory(cls, session_factory=None, **kwargs):
        """Builds an orchestrator whose collaborators share one database."""
        return cls(
            PatronDirectory(session_factory),
            Catalog(session_factory),
            LoanStore(session_factory),
            **kwargs
        )

    def _now(self) -> datetime.datetime:
        return to_utc(self.clock())

    def _check_eligibility(self, patron_id: int, item_id: int):
        """Runs the borrow preconditions in order; the first failure is raised."""
        patron = self.patrons.get(patron_id)
        if patron is None:
            raise PatronNotFoundError(f"Patron not found with ID: {patron_id}", patron_id=patron_id)

        if not patron.is_active:
            raise PatronInactiveError(
                f"Patron account is not active. Status: {patron.status}",
                patron_id=patron_id, status=patron.status)

        item = self.catalog.get(item_id)
        if item is None:
            raise ItemNotFoundError(f"Item not found with ID: {item_id}", item_id=item_id)

        if not item.is_borrowable:
            raise BookUnavailableError(
                f"No copies available for item {item_id}", item_id=item_id)

        open_loans = self.loans.count_open_by_patron(patron_id)
        if open_loans >= self.borrow_limit:
            raise BorrowLimitError(
                f"Patron has reached the borrowing limit: {open_loans} items",
                patron_id=patron_id, open_loans=open_loans, limit=self.borrow_limit)

    def eligibility(self, patron_id: int, item_id: int) -> bool:
        """Pre-flight check with no side effects.

        Nothing is reserved, so True is advisory: a concurrent borrower may
        take the last copy before the caller gets to borrow().
        """
        try:
            self._check_eligibility(patron_id, item_id)
        except (NotFoundError, InvalidStateError) as e:
            logger.debug(f"Patron {patron_id} not eligible for item {item_id}: {e}")
            return False
        return True

    def borrow(self, patron_id: int, item_id: int, loan_period_days: Optional[int] = None) -> Loan:
        """
        Lend one copy of an item to a patron.

        Args:
            patron_id: The borrowing patron.
            item_id: The item to lend.
            loan_period_days: Days until the loan is due, defaults to
                DEFAULT_LOAN_PERIOD_DAYS.

        Returns:
            The newly created loan, in BORROWED status.

        Raises:
            PatronNotFoundError, ItemNotFoundError: a referenced record is absent.
            PatronInactiveError, BookUnavailableError, BorrowLimitError:
                a borrowing rule is violated.
            ConflictError: a concurrent borrow took the last copy between the
                checks and the decrement. Safe to retry.
            InconsistencyError: the copy was taken off the shelf but the loan
                could not be recorded.
        """
        if loan_period_days is None:
            loan_period_days = self.default_loan_period_days
        if loan_period_days <= 0:
            raise ValueError(f"Loan period must be positive, got {loan_period_days} days")

        logger.info(f"Processing borrow - patron: {patron_id}, item: {item_id}")
        try:
            self._check_eligibility(patron_id, item_id)
        except (NotFoundError, InvalidStateError) as e:
            logger.warning(f"Borrow rejected - patron: {patron_id}, item: {item_id}: {e}")
            raise

        if not self.catalog.try_decrement(item_id):
            logger.warning(f"Lost the race for the last copy of item {item_id}")
            raise ConflictError(
                f"Item {item_id} ran out of copies while the borrow was in progress",
                patron_id=patron_id, item_id=item_id)

        now = self._now()
        try:
            loan = self.loans.create(
                patron_id,
                item_id,
                due_at=now + datetime.timedelta(days=loan_period_days),
                borrowed_at=now,
                notes=f"Borrowed for {loan_period_days} days",
            )
        except Exception as e:
            logger.critical(
                f"Copy of item {item_id} taken for patron {patron_id} but the loan "
                f"was not recorded, manual reconciliation required: {e}")
            raise InconsistencyError(
                f"Loan for item {item_id} was not recorded after its copy count was decremented",
                item_id=item_id, patron_id=patron_id) from e

        logger.info(f"Borrow succeeded - loan: {loan.id}, due: {loan.due_at.isoformat()}")
        return loan

    def return_loan(self, loan_id: int) -> bool:
        """
        Close an open loan and put its copy back on the shelf.

        The loan's fine is finalized at the moment of return. The copy count
        is only incremented once the return is durably recorded; if that
        increment fails the loan stays returned and an InconsistencyError
        is raised.
        """
        logger.info(f"Processing return - loan: {loan_id}")
        loan = self.loans.find_by_id(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan not found with ID: {loan_id}", loan_id=loan_id)

        if not loan.is_open:
            logger.warning(f"Loan {loan_id} was already returned")
            raise AlreadyReturnedError(f"Loan {loan_id} was already returned", loan_id=loan_id)

        assert_transition(loan.status, LoanStatus.RETURNED)

        now = self._now()
        fine = compute_fine(loan, now, self.daily_fine_rate)
        if not self.loans.mark_returned(loan_id, now, fine_amount=fine):
            logger.warning(f"Loan {loan_id} was returned concurrently")
            raise AlreadyReturnedError(f"Loan {loan_id} was already returned", loan_id=loan_id)

        try:
            restocked = self.catalog.increment(loan.item_id)
        except Exception as e:
            logger.critical(
                f"Loan {loan_id} returned but item {loan.item_id} was not restocked, "
                f"manual reconciliation required: {e}")
            raise InconsistencyError(
                f"Copy count of item {loan.item_id} not restored after return of loan {loan_id}",
                loan_id=loan_id, item_id=loan.item_id) from e
        if not restocked:
            logger.critical(
                f"Loan {loan_id} returned but item {loan.item_id} rejected the restock, "
                f"manual reconciliation required")
            raise InconsistencyError(
                f"Copy count of item {loan.item_id} not restored after return of loan {loan_id}",
                loan_id=loan_id, item_id=loan.item_id)

        logger.info(f"Return succeeded - loan: {loan_id}, item: {loan.item_id}, fine: {fine}")
        return True

    def calculate_fine(self, loan_id: int, now: Optional[datetime.datetime] = None) -> int:
        loan = self.loans.find_by_id(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan not found with ID: {loan_id}", loan_id=loan_id)
        return compute_fine(loan, to_utc(now) if now else self._now(), self.daily_fine_rate)

    def pay_fine(self, loan_id: int) -> bool:
        """Records that the finalized fine of a returned loan has been settled."""
        if self.loans.find_by_id(loan_id) is None:
            raise LoanNotFoundError(f"Loan not found with ID: {loan_id}", loan_id=loan_id)
        return self.loans.mark_fine_paid(loan_id)

    def active_loans(self, patron_id: int) -> List[Loan]:
        return [loan for loan in self.loans.find_by_patron(patron_id) if loan.is_open]

    def loan_history(self, patron_id: int) -> List[Loan]:
        return self.loans.find_by_patron(patron_id)

    def _reconcile_one(self, loan: Loan, now: datetime.datetime, report: ReconciliationReport):
        if loan.status is not LoanStatus.OVERDUE:
            if self.loans.set_status(loan.id, LoanStatus.OVERDUE):
                report.transitioned += 1
            else:
                current = self.loans.find_by_id(loan.id)
                if current is None or not current.is_open:
                    report.skipped += 1
                    return
                if current.status is not LoanStatus.OVERDUE:
                    raise ConflictError(
                        f"Loan {loan.id} could not be marked overdue from {current.status.value}",
                        loan_id=loan.id)

        fine = compute_fine(loan, now, self.daily_fine_rate)
        if self.loans.set_fine(loan.id, fine):
            report.fined += 1
            return

        current = self.loans.find_by_id(loan.id)
        if current is None or not current.is_open:
            report.skipped += 1
        elif current.fine_paid or (current.fine_amount or 0) < fine:
            raise ConflictError(f"Fine of loan {loan.id} was not updated", loan_id=loan.id)
        # otherwise a later sweep already persisted a higher fine

    def reconcile_overdue(self, now: Optional[datetime.datetime] = None) -> ReconciliationReport:
        """
        Mark every open loan past its due time as OVERDUE and refresh its fine.

        Safe to re-run: an already overdue loan only has its fine refreshed.
        Returned and lost loans are never touched; lost loans are open but
        terminal, so they are passed over here. A failure on one loan is
        recorded in the report and the sweep moves on to the next.
        """
        now = to_utc(now) if now else self._now()
        report = ReconciliationReport(now=now, started_at=utcnow())
        logger.info(f"Reconciling overdue loans as of {now.isoformat()}")

        for loan in self.loans.find_overdue(now):
            if is_terminal(loan.status):
                # lost loans still hold their copy but are written off
                continue
            report.checked += 1
            try:
                self._reconcile_one(loan, now, report)
            except Exception as e:
                logger.error(f"Failed to reconcile loan {loan.id}: {e}")
                report.failures.append(SweepFailure(
                    loan_id=loan.id, error=type(e).__name__, message=str(e)))

        report.finished_at = utcnow()
        logger.info(
            f"Overdue reconciliation completed - checked: {report.checked}, "
            f"transitioned: {report.transitioned}, fined: {report.fined}, "
            f"skipped: {report.skipped}, failed: {len(report.failures)}")
        return report
