# FILE: hospital_ledger/models/accounts.py
from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey,
    Numeric, Index, Text
)
from sqlalchemy.orm import relationship

from hospital_ledger.db.base import Base

Money = Numeric(14, 2)


class EntryType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


class FundType(str, enum.Enum):
    FUND_IN = "fund_in"
    FUND_OUT = "fund_out"


# -------------------------
# Shop (optics) ledger
# -------------------------
class OpticsTransaction(Base):
    """
    Optics shop income/expense row. The shop balance is never stored:
    it is Σfund_in - Σfund_out + Σincome - Σexpense over these tables.
    """
    __tablename__ = "optics_transactions"
    __table_args__ = (
        Index("ix_optics_transactions_type_date", "type", "transaction_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    transaction_no = Column(String(50), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    category = Column(String(150), nullable=False, default="")
    description = Column(Text, default="")

    reference_type = Column(String(40), nullable=True)
    reference_id = Column(Integer, nullable=True)

    transaction_date = Column(Date, nullable=False, default=date.today)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class OpticsFundTransaction(Base):
    __tablename__ = "optics_fund_transactions"
    __table_args__ = (
        Index("ix_optics_fund_transactions_type_date", "type", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    voucher_no = Column(String(50), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    purpose = Column(String(255), nullable=False, default="")
    description = Column(Text, default="")
    date = Column(Date, nullable=False, default=date.today)
    added_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# -------------------------
# Consolidated (hospital) ledger
# -------------------------
class HospitalTransaction(Base):
    """
    Hospital-wide income/expense row. Written shop -> hospital only, and only
    for cash that actually changed hands.
    """
    __tablename__ = "hospital_transactions"
    __table_args__ = (
        Index("ix_hospital_transactions_type_date", "type", "transaction_date"),
        Index("ix_hospital_transactions_source", "source_type", "source_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    transaction_no = Column(String(50), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    category = Column(String(150), nullable=False, default="")

    income_category_id = Column(Integer, ForeignKey("hospital_income_categories.id"), nullable=True)
    expense_category_id = Column(Integer, ForeignKey("hospital_expense_categories.id"), nullable=True)

    # polymorphic link back to the originating document (optics_sale / optics_purchase / optics_vendor)
    source_type = Column(String(40), nullable=True)
    source_id = Column(Integer, nullable=True)

    description = Column(Text, default="")
    transaction_date = Column(Date, nullable=False, default=date.today)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    income_category = relationship("HospitalIncomeCategory")
    expense_category = relationship("HospitalExpenseCategory")
