# FILE: hospital_ledger/schemas/optics_sale.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from hospital_ledger.models.sale import SaleStatus

Money = Decimal


class SaleItemIn(BaseModel):
    type: str = Field(..., description="frame | lens | complete_glasses")
    id: int
    quantity: int = Field(..., gt=0)
    # defaults to the item's current selling price
    price: Optional[Money] = Field(None, ge=0)


class SaleCreate(BaseModel):
    customer_id: Optional[int] = None  # patient id
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None

    items: List[SaleItemIn] = Field(default_factory=list)

    glass_fitting_price: Money = Field(Decimal("0"), ge=0)
    discount: Money = Field(Decimal("0"), ge=0)
    advance_payment: Money = Field(Decimal("0"), ge=0)

    payment_method: str = "cash"
    transaction_id: Optional[str] = None
    notes: Optional[str] = ""


class SaleUpdate(SaleCreate):
    pass


class SalePaymentIn(BaseModel):
    amount: Money = Field(..., gt=0)
    payment_method: str = "cash"
    transaction_id: Optional[str] = None
    notes: Optional[str] = ""


class SaleStatusIn(BaseModel):
    status: SaleStatus


class SaleItemOut(BaseModel):
    id: int
    item_type: str
    item_id: int
    item_name: str
    quantity: int
    unit_price: Money
    total_price: Money

    model_config = ConfigDict(from_attributes=True)


class SalePaymentOut(BaseModel):
    id: int
    amount: Money
    payment_method: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = ""
    received_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaleOut(BaseModel):
    id: int
    invoice_number: str

    patient_id: Optional[int] = None
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    seller_id: Optional[int] = None

    glass_fitting_price: Money
    discount: Money
    total_amount: Money
    advance_payment: Money
    due_amount: Money
    status: str
    notes: Optional[str] = ""

    items: List[SaleItemOut] = Field(default_factory=list)
    payments: List[SalePaymentOut] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
