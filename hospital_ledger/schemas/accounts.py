# FILE: hospital_ledger/schemas/accounts.py
from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class FundIn(BaseModel):
    amount: Money = Field(..., gt=0)
    purpose: str = Field(..., min_length=1)
    description: Optional[str] = ""
    date: Optional[dt.date] = None


class LedgerEntryIn(BaseModel):
    amount: Money = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: Optional[str] = ""
    transaction_date: Optional[date] = None


class OpticsTransactionOut(BaseModel):
    id: int
    transaction_no: str
    type: str
    amount: Money
    category: str
    description: Optional[str] = ""
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    transaction_date: date
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FundTransactionOut(BaseModel):
    id: int
    voucher_no: str
    type: str
    amount: Money
    purpose: str
    description: Optional[str] = ""
    date: dt.date
    added_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class HospitalTransactionOut(BaseModel):
    id: int
    transaction_no: str
    type: str
    amount: Money
    category: str
    source_type: Optional[str] = None
    source_id: Optional[int] = None
    description: Optional[str] = ""
    transaction_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BalanceOut(BaseModel):
    balance: Money
    as_of: Optional[date] = None


class MonthlyReportOut(BaseModel):
    year: int
    month: int
    income: Money
    expense: Money
    profit: Money
    balance: Money
