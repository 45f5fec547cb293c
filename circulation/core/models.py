#!/usr/bin/env python

"""
    Models for Circulation,
    including the patrons, items and loans tables.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from sqlalchemy import (
    Column, String, Boolean, Integer, DateTime, ForeignKey, CheckConstraint,
    Enum as SQLAlchemyEnum
)
from sqlalchemy.orm import relationship
from circulation.core.db import Base
from circulation.core.status import LoanStatus, INITIAL_STATUS
from circulation.core.utils import utcnow


class Patron(Base):
    __tablename__ = 'patrons'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True)
    status = Column(String(20), default='active', nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Item(Base):
    __tablename__ = 'items'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    total_copies = Column(Integer, default=1, nullable=False)
    available_copies = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint('available_copies >= 0', name='available_copies_non_negative'),
        CheckConstraint('available_copies <= total_copies', name='available_copies_within_total'),
    )


class Loan(Base):
    __tablename__ = 'loans'

    id = Column(Integer, primary_key=True)
    patron_id = Column(Integer, ForeignKey('patrons.id'), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=False, index=True)
    borrowed_at = Column(DateTime, default=utcnow, nullable=False)
    due_at = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)
    status = Column(SQLAlchemyEnum(LoanStatus), default=INITIAL_STATUS, nullable=False)
    fine_amount = Column(Integer, nullable=True)
    fine_paid = Column(Boolean, default=False, nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    patron = relationship('Patron', back_populates='loans')
    item = relationship('Item', back_populates='loans')


Patron.loans = relationship('Loan', back_populates='patron')
Item.loans = relationship('Loan', back_populates='item')
