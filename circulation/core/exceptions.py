class CirculationError(Exception):
    """Base exception for every lending lifecycle failure."""

    def __init__(self, message: str = "", **details):
        self.message = message
        self.details = details
        super().__init__(message)


class StoreError(CirculationError): pass

# Referenced patron, item or loan is absent
class NotFoundError(CirculationError): pass

class PatronNotFoundError(NotFoundError): pass

class ItemNotFoundError(NotFoundError): pass

class LoanNotFoundError(NotFoundError): pass

# Business rule violations, surfaced to the caller and never retried
class InvalidStateError(CirculationError): pass

class PatronInactiveError(InvalidStateError): pass

class BookUnavailableError(InvalidStateError): pass

class BorrowLimitError(InvalidStateError): pass

class AlreadyReturnedError(InvalidStateError): pass

class IllegalTransitionError(InvalidStateError): pass


class ConflictError(CirculationError):
    """A concurrent mutation prevented the expected transition.

    The caller may retry the whole operation, starting again from the
    precondition checks.
    """


class InconsistencyError(CirculationError):
    """One half of a cross-aggregate step was committed and the other was not.

    Raised when the copy count was decremented but the loan record could not
    be created, or when a loan was marked returned but the copy count could
    not be incremented. Never retried or compensated automatically.
    """

    def __init__(self, message: str = "", loan_id=None, item_id=None, **details):
        super().__init__(message, loan_id=loan_id, item_id=item_id, **details)
        self.loan_id = loan_id
        self.item_id = item_id
