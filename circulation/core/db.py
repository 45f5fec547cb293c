import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from circulation.configs import DB_URI, DEBUG
from circulation.core.exceptions import StoreError

logger = logging.getLogger(__name__)

Base = declarative_base()

_engine = None
_session_factory = None


def make_engine(uri=DB_URI, echo=DEBUG):
    engine_kwargs = {'echo': echo}
    if uri.startswith('sqlite'):
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        if ':memory:' in uri or uri == 'sqlite://':
            # a single shared connection, otherwise each checkout sees an empty database
            engine_kwargs['poolclass'] = StaticPool
    else:
        # Only use client_encoding for PostgreSQL, not SQLite
        engine_kwargs['client_encoding'] = 'utf8'
    return create_engine(uri, **engine_kwargs)


def make_session_factory(engine):
    return sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init(engine):
    """Creates the patrons, items and loans tables."""
    from circulation.core import models  # noqa: F401 registers the tables on Base
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def get_session_factory():
    """Get or initialize the default session factory lazily."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = make_engine()
        init(_engine)
        _session_factory = make_session_factory(_engine)
    return _session_factory


@contextmanager
def read_session(session_factory, table: str):
    """Session for lookups; database errors surface as StoreError."""
    try:
        with session_factory() as session:
            yield session
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to read {table}: {e}.", table=table) from e


def conditional_update(session_factory, model, ident, criteria, values) -> bool:
    """Applies `values` to the row `ident` only while every criterion holds.

    The guard and the write are a single UPDATE statement, so two callers
    racing on the same row can never both see their update applied.
    Returns True when a row was changed.
    """
    with session_factory() as session:
        try:
            changed = session.query(model).filter(
                model.id == ident, *criteria
            ).update(values, synchronize_session=False)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(
                f"Failed to update {model.__tablename__} row {ident}: {e}.",
                table=model.__tablename__, id=ident) from e
    return changed > 0
