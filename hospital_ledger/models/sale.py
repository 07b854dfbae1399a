# FILE: hospital_ledger/models/sale.py
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey,
    Numeric, Text, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from hospital_ledger.db.base import Base

Money = Numeric(14, 2)


class SaleStatus(str, enum.Enum):
    PENDING = "pending"
    READY = "ready"
    DELIVERED = "delivered"


class OpticsSale(Base):
    __tablename__ = "optics_sales"
    __table_args__ = (
        CheckConstraint("due_amount >= 0", name="ck_optics_sales_due_non_negative"),
        CheckConstraint("advance_payment <= total_amount", name="ck_optics_sales_advance_le_total"),
        Index("ix_optics_sales_seller_created", "seller_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=False, default="Walk-in Customer")
    customer_phone = Column(String(20), nullable=True)
    customer_email = Column(String(255), nullable=True)

    seller_id = Column(Integer, nullable=True)

    glass_fitting_price = Column(Money, nullable=False, default=Decimal("0.00"))
    discount = Column(Money, nullable=False, default=Decimal("0.00"))
    total_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    advance_payment = Column(Money, nullable=False, default=Decimal("0.00"))
    due_amount = Column(Money, nullable=False, default=Decimal("0.00"))

    status = Column(String(20), nullable=False, default=SaleStatus.PENDING.value)
    notes = Column(Text, default="")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    patient = relationship("Patient")
    items = relationship(
        "OpticsSaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="OpticsSaleItem.id",
    )
    payments = relationship(
        "OpticsSalePayment",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="OpticsSalePayment.id",
    )

    @property
    def items_total(self) -> Decimal:
        return sum((Decimal(str(i.total_price or 0)) for i in self.items), Decimal("0.00"))

    @property
    def total_paid(self) -> Decimal:
        return sum((Decimal(str(p.amount or 0)) for p in self.payments), Decimal("0.00"))


class OpticsSaleItem(Base):
    """Line snapshot; item_name survives later rename or deletion of the item."""
    __tablename__ = "optics_sale_items"

    id = Column(Integer, primary_key=True)
    optics_sale_id = Column(Integer, ForeignKey("optics_sales.id", ondelete="CASCADE"), nullable=False, index=True)

    item_type = Column(String(30), nullable=False)
    item_id = Column(Integer, nullable=False)
    item_name = Column(String(255), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False, default=Decimal("0.00"))
    total_price = Column(Money, nullable=False, default=Decimal("0.00"))

    sale = relationship("OpticsSale", back_populates="items")


class OpticsSalePayment(Base):
    __tablename__ = "optics_sale_payments"

    id = Column(Integer, primary_key=True)
    optics_sale_id = Column(Integer, ForeignKey("optics_sales.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_method = Column(String(30), nullable=False, default="cash")
    transaction_id = Column(String(255), nullable=True)
    notes = Column(Text, default="")
    received_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    sale = relationship("OpticsSale", back_populates="payments")
