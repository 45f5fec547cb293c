from typing import Optional
from circulation.core.db import get_session_factory, read_session
from circulation.core.models import Patron as PatronRow
from circulation.schemas.patron import Patron


class PatronDirectory:
    """Read-only lookup of patrons and their standing."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session_factory()

    def get(self, patron_id: int) -> Optional[Patron]:
        with read_session(self.session_factory, PatronRow.__tablename__) as session:
            row = session.get(PatronRow, patron_id)
            return Patron.model_validate(row) if row is not None else None
