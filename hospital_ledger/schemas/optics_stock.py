# FILE: hospital_ledger/schemas/optics_stock.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class ItemCreate(BaseModel):
    item_type: str
    opening_stock: int = Field(0, ge=0)
    # opening stock is bought from this vendor; without one it is paid in cash
    vendor_id: Optional[int] = None
    paid_amount: Money = Field(Decimal("0"), ge=0)
    # table columns (sku, brand, model, price, selling_price, ...)
    data: Dict[str, Any] = Field(default_factory=dict)


class ItemUpdate(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class ItemActiveIn(BaseModel):
    is_active: bool


class ItemOut(BaseModel):
    item_type: str
    id: int
    name: str
    stock_quantity: int
    minimum_stock_level: int
    cost_price: Money
    selling_price: Money
    is_active: bool


class StockInIn(BaseModel):
    item_type: str
    item_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Money = Field(..., ge=0)
    vendor_id: Optional[int] = None
    paid_amount: Money = Field(Decimal("0"), ge=0)
    notes: Optional[str] = ""


class StockAdjustIn(BaseModel):
    item_type: str
    item_id: int
    quantity: int  # signed, non-zero
    notes: Optional[str] = ""


class MovementEditIn(BaseModel):
    item_type: str
    item_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Money = Field(..., ge=0)
    notes: Optional[str] = None


class MovementOut(BaseModel):
    id: int
    item_type: str
    item_id: int
    movement_type: str
    quantity: int
    previous_stock: int
    new_stock: int
    unit_price: Money
    total_amount: Money
    sale_id: Optional[int] = None
    purchase_id: Optional[int] = None
    notes: Optional[str] = ""
    user_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockDriftOut(BaseModel):
    item_type: str
    item_id: int
    name: str
    cached: int
    replayed: int
    difference: int
