# FILE: hospital_ledger/models/vendor.py
from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey,
    Numeric, Boolean, Index, Text, CheckConstraint
)
from sqlalchemy.orm import relationship

from hospital_ledger.db.base import Base

Money = Numeric(14, 2)


class BalanceType(str, enum.Enum):
    DUE = "due"          # shop owes the vendor
    ADVANCE = "advance"  # shop has pre-paid the vendor


class VendorTxnType(str, enum.Enum):
    OPENING = "opening"
    PURCHASE = "purchase"
    PAYMENT = "payment"
    ADJUSTMENT = "adjustment"


class OpticsVendor(Base):
    __tablename__ = "optics_vendors"
    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_optics_vendors_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    company_name = Column(String(255), default="")
    contact_person = Column(String(255), default="")
    phone = Column(String(50), default="")
    email = Column(String(255), default="")
    address = Column(String(1000), default="")
    trade_license = Column(String(100), default="")

    opening_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    # never negative; direction lives in balance_type
    current_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    balance_type = Column(String(10), nullable=False, default=BalanceType.DUE.value)

    credit_limit = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_terms_days = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, default="")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    transactions = relationship(
        "VendorTransaction",
        back_populates="vendor",
        order_by="VendorTransaction.id",
    )
    purchases = relationship("OpticsPurchase", back_populates="vendor")


class VendorTransaction(Base):
    """One row per vendor balance mutation, with before/after snapshots."""
    __tablename__ = "optics_vendor_transactions"
    __table_args__ = (
        Index("ix_optics_vendor_txn_vendor_date", "vendor_id", "transaction_date"),
    )

    id = Column(Integer, primary_key=True)
    transaction_no = Column(String(50), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("optics_vendors.id"), nullable=False, index=True)

    type = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False, default=Decimal("0.00"))

    previous_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    previous_balance_type = Column(String(10), nullable=False, default=BalanceType.DUE.value)
    new_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    new_balance_type = Column(String(10), nullable=False, default=BalanceType.DUE.value)

    reference_type = Column(String(40), nullable=True)
    reference_id = Column(Integer, nullable=True)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=True)

    description = Column(Text, default="")
    transaction_date = Column(Date, nullable=False, default=date.today)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    vendor = relationship("OpticsVendor", back_populates="transactions")
    payment_method = relationship("PaymentMethod")
