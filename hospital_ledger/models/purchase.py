# FILE: hospital_ledger/models/purchase.py
from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey,
    Numeric, Index, Text, CheckConstraint
)
from sqlalchemy.orm import relationship

from hospital_ledger.db.base import Base

Money = Numeric(14, 2)


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class OpticsPurchase(Base):
    """
    Stock purchase document. Only the paid portion is expensed upward at
    purchase time; the due is expensed as it is paid.
    """
    __tablename__ = "optics_purchases"
    __table_args__ = (
        CheckConstraint("due_amount >= 0", name="ck_optics_purchases_due_non_negative"),
        CheckConstraint("paid_amount <= total_cost", name="ck_optics_purchases_paid_le_total"),
        Index("ix_optics_purchases_vendor_date", "vendor_id", "purchase_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    purchase_no = Column(String(50), unique=True, nullable=False, index=True)

    vendor_id = Column(Integer, ForeignKey("optics_vendors.id"), nullable=True, index=True)
    item_type = Column(String(30), nullable=False)
    item_id = Column(Integer, nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Money, nullable=False, default=Decimal("0.00"))
    total_cost = Column(Money, nullable=False, default=Decimal("0.00"))
    paid_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    due_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    purchase_date = Column(Date, nullable=False, default=date.today)
    # consolidated expense for the paid-at-purchase portion
    hospital_transaction_id = Column(Integer, ForeignKey("hospital_transactions.id"), nullable=True)

    notes = Column(Text, default="")
    added_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("OpticsVendor", back_populates="purchases")
    movements = relationship("StockMovement", order_by="StockMovement.id")
