from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class Item(BaseModel):
    id: int
    title: str
    total_copies: int
    available_copies: int
    updated_at: Optional[datetime] = None

    @property
    def is_borrowable(self) -> bool:
        return self.available_copies > 0

    class Config:
        from_attributes = True
        frozen = True
