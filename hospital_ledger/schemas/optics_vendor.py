# FILE: hospital_ledger/schemas/optics_vendor.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class VendorBase(BaseModel):
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    trade_license: Optional[str] = None
    credit_limit: Optional[Money] = Field(None, ge=0)
    payment_terms_days: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class VendorCreate(VendorBase):
    name: str = Field(..., min_length=1)
    opening_balance: Money = Field(Decimal("0"), ge=0)
    balance_type: Literal["due", "advance"] = "due"


class VendorUpdate(VendorBase):
    name: Optional[str] = None
    is_active: Optional[bool] = None


class VendorPaymentIn(BaseModel):
    amount: Money = Field(..., gt=0)
    payment_method_id: Optional[int] = None
    payment_date: Optional[date] = None
    description: Optional[str] = ""


class VendorOut(BaseModel):
    id: int
    name: str
    company_name: Optional[str] = ""
    contact_person: Optional[str] = ""
    phone: Optional[str] = ""
    email: Optional[str] = ""
    opening_balance: Money
    current_balance: Money
    balance_type: str
    credit_limit: Money
    payment_terms_days: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class VendorTransactionOut(BaseModel):
    id: int
    transaction_no: str
    type: str
    amount: Money
    previous_balance: Money
    previous_balance_type: str
    new_balance: Money
    new_balance_type: str
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    description: Optional[str] = ""
    transaction_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VendorStatementOut(BaseModel):
    vendor: VendorOut
    current_balance: Money
    balance_type: str
    transactions: List[VendorTransactionOut]
