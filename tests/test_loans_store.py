import datetime
import pytest
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import OperationalError
from circulation.core import db
from circulation.core.exceptions import StoreError
from circulation.core.loans import LoanStore
from circulation.core.status import LoanStatus

NOW = datetime.datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def store(session_factory):
    return LoanStore(session_factory)


@pytest.fixture
def patron_id(add_patron):
    return add_patron()


@pytest.fixture
def item_id(add_item):
    return add_item(copies=3)


def open_loan(store, patron_id, item_id, days=14, borrowed_at=NOW):
    return store.create(
        patron_id, item_id,
        due_at=borrowed_at + datetime.timedelta(days=days),
        borrowed_at=borrowed_at,
    )


def test_create_assigns_id_and_defaults(store, patron_id, item_id):
    loan = store.create(patron_id, item_id, due_at=NOW + datetime.timedelta(days=14),
                        borrowed_at=NOW, notes="Borrowed for 14 days")
    assert loan.id is not None
    assert loan.status is LoanStatus.BORROWED
    assert loan.borrowed_at == NOW
    assert loan.due_at == NOW + datetime.timedelta(days=14)
    assert loan.returned_at is None
    assert loan.fine_amount is None
    assert loan.fine_paid is False
    assert loan.notes == "Borrowed for 14 days"
    assert loan.updated_at is not None
    assert loan.is_open
    assert store.find_by_id(loan.id) == loan


def test_find_by_id_missing(store):
    assert store.find_by_id(999) is None


def test_find_by_patron_newest_first(store, patron_id, item_id, add_patron):
    older = open_loan(store, patron_id, item_id, borrowed_at=NOW)
    newer = open_loan(store, patron_id, item_id, borrowed_at=NOW + datetime.timedelta(days=1))
    open_loan(store, add_patron("Grace"), item_id)
    assert [loan.id for loan in store.find_by_patron(patron_id)] == [newer.id, older.id]
    assert len(store.find_by_item(item_id)) == 3


def test_find_open_and_counts(store, patron_id, item_id):
    first = open_loan(store, patron_id, item_id)
    second = open_loan(store, patron_id, item_id)
    assert store.mark_returned(first.id, NOW + datetime.timedelta(days=1))
    assert [loan.id for loan in store.find_open()] == [second.id]
    assert store.count_open_by_patron(patron_id) == 1
    assert store.count_open_by_item(item_id) == 1
    assert store.count_all() == 2


def test_find_overdue_predicate(store, patron_id, item_id):
    due_earlier = open_loan(store, patron_id, item_id, days=1)
    due_later = open_loan(store, patron_id, item_id, days=2)
    not_due = open_loan(store, patron_id, item_id, days=30)
    returned = open_loan(store, patron_id, item_id, days=1)
    store.mark_returned(returned.id, NOW + datetime.timedelta(hours=1))
    lost = open_loan(store, patron_id, item_id, days=1)
    store.set_status(lost.id, LoanStatus.LOST)

    overdue = store.find_overdue(NOW + datetime.timedelta(days=5))
    # lost loans are still open; the sweep, not the store, passes them over
    assert [loan.id for loan in overdue] == [due_earlier.id, lost.id, due_later.id]
    assert not_due.id not in [loan.id for loan in overdue]


def test_find_overdue_excludes_loan_due_exactly_now(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id, days=1)
    assert store.find_overdue(loan.due_at) == []


def test_mark_returned_is_at_most_once(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    first_return = NOW + datetime.timedelta(days=2)
    assert store.mark_returned(loan.id, first_return) is True
    assert store.mark_returned(loan.id, NOW + datetime.timedelta(days=9)) is False

    returned = store.find_by_id(loan.id)
    assert returned.status is LoanStatus.RETURNED
    assert returned.returned_at == first_return


def test_mark_returned_unknown_loan(store):
    assert store.mark_returned(12345, NOW) is False


def test_mark_returned_keeps_higher_persisted_fine(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    assert store.set_fine(loan.id, 15000)
    assert store.mark_returned(loan.id, NOW, fine_amount=10000)
    assert store.find_by_id(loan.id).fine_amount == 15000


def test_mark_returned_persists_final_fine(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    assert store.mark_returned(loan.id, NOW, fine_amount=5000)
    assert store.find_by_id(loan.id).fine_amount == 5000


def test_set_status_follows_transition_table(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    assert store.set_status(loan.id, LoanStatus.OVERDUE)
    assert not store.set_status(loan.id, LoanStatus.BORROWED)
    assert not store.set_status(loan.id, LoanStatus.OVERDUE)
    assert store.find_by_id(loan.id).status is LoanStatus.OVERDUE


def test_set_status_never_reopens_returned_loan(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    store.mark_returned(loan.id, NOW)
    assert not store.set_status(loan.id, LoanStatus.OVERDUE)
    assert not store.set_status(loan.id, LoanStatus.LOST)
    assert store.find_by_id(loan.id).status is LoanStatus.RETURNED


def test_set_status_rejects_returned(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    with pytest.raises(ValueError):
        store.set_status(loan.id, LoanStatus.RETURNED)


def test_set_fine_never_decreases(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    assert store.set_fine(loan.id, 10000)
    assert store.set_fine(loan.id, 10000)
    assert not store.set_fine(loan.id, 5000)
    assert store.find_by_id(loan.id).fine_amount == 10000


def test_set_fine_rejects_negative(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    with pytest.raises(ValueError):
        store.set_fine(loan.id, -1)


def test_set_fine_leaves_returned_loan_alone(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    store.mark_returned(loan.id, NOW, fine_amount=5000)
    assert not store.set_fine(loan.id, 50000)
    assert store.find_by_id(loan.id).fine_amount == 5000


def test_mark_fine_paid(store, patron_id, item_id):
    unfined = open_loan(store, patron_id, item_id)
    store.mark_returned(unfined.id, NOW, fine_amount=0)
    assert not store.mark_fine_paid(unfined.id)

    loan = open_loan(store, patron_id, item_id)
    store.set_fine(loan.id, 5000)
    assert not store.mark_fine_paid(loan.id)  # still open, fine not final
    store.mark_returned(loan.id, NOW, fine_amount=5000)
    assert store.mark_fine_paid(loan.id)
    assert not store.mark_fine_paid(loan.id)
    assert store.find_by_id(loan.id).fine_paid is True


def test_delete_is_administrative(store, patron_id, item_id):
    loan = open_loan(store, patron_id, item_id)
    assert store.delete(loan.id)
    assert store.find_by_id(loan.id) is None
    assert not store.delete(loan.id)


def test_create_wraps_database_errors(session_factory, patron_id, item_id):
    session = MagicMock()
    session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
    factory = MagicMock()
    factory.return_value.__enter__.return_value = session

    with pytest.raises(StoreError) as excinfo:
        LoanStore(factory).create(patron_id, item_id, due_at=NOW)
    assert "Failed to create loan record" in str(excinfo.value)
    session.rollback.assert_called_once()


def test_lookups_wrap_database_errors(patron_id, item_id):
    session = MagicMock()
    session.get.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))
    session.query.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))
    factory = MagicMock()
    factory.return_value.__enter__.return_value = session
    store = LoanStore(factory)

    with pytest.raises(StoreError) as excinfo:
        store.find_by_id(1)
    assert "Failed to read loans" in str(excinfo.value)
    assert excinfo.value.details == {"table": "loans"}
    assert isinstance(excinfo.value.__cause__, OperationalError)

    with pytest.raises(StoreError):
        store.find_by_patron(patron_id)
    with pytest.raises(StoreError):
        store.count_open_by_item(item_id)


def test_default_session_factory_is_built_once():
    engine = db.make_engine("sqlite://")
    with patch.object(db, "_engine", None), \
            patch.object(db, "_session_factory", None), \
            patch.object(db, "make_engine", return_value=engine) as make_engine:
        store = LoanStore()
        assert store.session_factory is db.get_session_factory()
        assert make_engine.call_count == 1
        # the tables exist on the lazily created engine
        assert store.count_all() == 0
    engine.dispose()
