from pydantic import BaseModel
from typing import Optional
from datetime import datetime

ACTIVE = 'active'

class Patron(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    class Config:
        from_attributes = True
        frozen = True
