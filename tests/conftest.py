import os
import datetime
import itertools

# Set TESTING before any circulation imports
os.environ["TESTING"] = "true"

import pytest
from circulation.core import db
from circulation.core.models import Patron, Item
from circulation.core.orchestrator import LoanOrchestrator

START = datetime.datetime(2024, 3, 1, 9, 0, 0)


class FrozenClock:
    """A clock the tests move by hand."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += datetime.timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = db.make_engine("sqlite:///:memory:", echo=False)
    db.init(engine)
    try:
        yield engine
    finally:
        db.Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return db.make_session_factory(engine)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def orchestrator(session_factory, clock):
    return LoanOrchestrator.from_session_factory(session_factory, clock=clock)


@pytest.fixture
def add_patron(session_factory):
    serial = itertools.count(1)

    def _add_patron(name="Ada", status="active"):
        with session_factory() as session:
            email = f"{name.lower()}.{next(serial)}@example.org"
            patron = Patron(name=name, email=email, status=status)
            session.add(patron)
            session.commit()
            return patron.id
    return _add_patron


@pytest.fixture
def add_item(session_factory):
    def _add_item(title="Dune", copies=1, available=None):
        with session_factory() as session:
            item = Item(
                title=title,
                total_copies=copies,
                available_copies=copies if available is None else available,
            )
            session.add(item)
            session.commit()
            return item.id
    return _add_item
