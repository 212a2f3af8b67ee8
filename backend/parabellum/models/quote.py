from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, Date, Text, ForeignKey, DateTime, UniqueConstraint, text, func
from typing import Optional
from datetime import date

from .identity import Base
from parabellum.services import quote_lifecycle as lifecycle


class Quote(Base):
    __tablename__ = 'quotes'
    STATUS_DRAFT = lifecycle.DRAFT
    ALL_STATUSES = lifecycle.ALL_STATUSES
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id'), nullable=False, index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(40), nullable=False, default=lifecycle.DRAFT, index=True)
    quote_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vat_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    terms: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    submitted_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True))
    service_manager_decided_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'))
    service_manager_decided_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True))
    service_manager_comments: Mapped[Optional[str]] = mapped_column(Text)
    dg_decided_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'))
    dg_decided_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True))
    dg_comments: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    customer = relationship('Customer')
    creator = relationship('User', foreign_keys=[created_by])
    items = relationship('QuoteItem', back_populates='quote', cascade='all, delete-orphan', order_by='QuoteItem.sort_order')
    approvals = relationship('QuoteApproval', back_populates='quote', cascade='all, delete-orphan', order_by='QuoteApproval.id')


class QuoteItem(Base):
    __tablename__ = 'quote_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    vat_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quote = relationship('Quote', back_populates='items')


class QuoteApproval(Base):
    __tablename__ = 'quote_approvals'
    LEVEL_SERVICE_MANAGER = 'SERVICE_MANAGER'
    LEVEL_GENERAL_DIRECTOR = 'GENERAL_DIRECTOR'
    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_EXPIRED = 'EXPIRED'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False)
    level: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    requested_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    decided_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'))
    comments: Mapped[Optional[str]] = mapped_column(Text)
    requested_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    decided_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True))

    quote = relationship('Quote', back_populates='approvals')

    __table_args__ = (UniqueConstraint('quote_id', 'level', name='uq_quote_approval_level'),)
