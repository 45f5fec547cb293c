#!/usr/bin/env python
"""
    Loan Schema for Circulation,
    the read-only snapshot of a loan row handed across the store boundary.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from circulation.core.status import LoanStatus

class Loan(BaseModel):
    id: int
    patron_id: int
    item_id: int
    borrowed_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    status: LoanStatus
    fine_amount: Optional[int] = None
    fine_paid: bool = False
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        """True until the loan has a recorded return."""
        return self.returned_at is None

    class Config:
        from_attributes = True
        frozen = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "patron_id": 7,
                "item_id": 42,
                "borrowed_at": "2023-10-01T12:00:00",
                "due_at": "2023-10-15T12:00:00",
                "returned_at": None,
                "status": "borrowed",
                "fine_amount": None,
                "fine_paid": False,
                "notes": "Borrowed for 14 days",
            }
        }
