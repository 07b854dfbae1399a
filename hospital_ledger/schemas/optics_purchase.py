# FILE: hospital_ledger/schemas/optics_purchase.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class PurchaseCreate(BaseModel):
    # no vendor => cash purchase, paid in full
    vendor_id: Optional[int] = None
    item_type: str
    item_id: int
    quantity: int = Field(..., gt=0)
    unit_cost: Money = Field(..., ge=0)
    paid_amount: Money = Field(Decimal("0"), ge=0)
    purchase_date: Optional[date] = None
    notes: Optional[str] = ""


class PurchaseUpdate(BaseModel):
    item_type: str
    item_id: int
    quantity: int = Field(..., gt=0)
    unit_cost: Money = Field(..., ge=0)
    notes: Optional[str] = None


class PurchasePayDue(BaseModel):
    amount: Money = Field(..., gt=0)
    payment_method_id: Optional[int] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = ""


class PurchaseOut(BaseModel):
    id: int
    purchase_no: str
    vendor_id: Optional[int] = None
    item_type: str
    item_id: int
    quantity: int
    unit_cost: Money
    total_cost: Money
    paid_amount: Money
    due_amount: Money
    payment_status: str
    purchase_date: date
    hospital_transaction_id: Optional[int] = None
    notes: Optional[str] = ""
    added_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
