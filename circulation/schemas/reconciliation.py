from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

class SweepFailure(BaseModel):
    loan_id: int
    error: str
    message: str

class ReconciliationReport(BaseModel):
    """Outcome of one overdue sweep.

    `skipped` counts loans that were returned (or otherwise closed) while the
    sweep was running; they are not failures.
    """
    now: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    checked: int = 0
    transitioned: int = 0
    fined: int = 0
    skipped: int = 0
    failures: List[SweepFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
