#!/usr/bin/env python

"""
    Catalog for Circulation,
    owner of each item's available-copy counter.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from typing import Optional
from circulation.core.db import get_session_factory, conditional_update, read_session
from circulation.core.models import Item as ItemRow
from circulation.core.utils import utcnow
from circulation.schemas.item import Item


class Catalog:

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session_factory()

    def get(self, item_id: int) -> Optional[Item]:
        with read_session(self.session_factory, ItemRow.__tablename__) as session:
            row = session.get(ItemRow, item_id)
            return Item.model_validate(row) if row is not None else None

    def try_decrement(self, item_id: int) -> bool:
        """Takes one copy off the shelf. False once none are left."""
        return conditional_update(
            self.session_factory, ItemRow, item_id,
            (ItemRow.available_copies > 0,),
            {ItemRow.available_copies: ItemRow.available_copies - 1,
             ItemRow.updated_at: utcnow()})

    def increment(self, item_id: int) -> bool:
        """Puts one copy back. False if the item is unknown or already fully stocked."""
        return conditional_update(
            self.session_factory, ItemRow, item_id,
            (ItemRow.available_copies < ItemRow.total_copies,),
            {ItemRow.available_copies: ItemRow.available_copies + 1,
             ItemRow.updated_at: utcnow()})
