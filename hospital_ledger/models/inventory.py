# FILE: hospital_ledger/models/inventory.py
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric,
    ForeignKey, Text, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from hospital_ledger.db.base import Base

Money = Numeric(14, 2)


# -------------------------
# Enums
# -------------------------
class ItemKind(str, enum.Enum):
    FRAME = "glasses"
    LENS = "lens_types"
    COMPLETE_GLASSES = "complete_glasses"


class MovementType(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"


# -------------------------
# Catalogue
# -------------------------
class Frame(Base):
    """
    Spectacle frame. purchase_price is the running weighted average cost,
    recomputed on every restock.
    """
    __tablename__ = "glasses"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_glasses_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    brand = Column(String(120), nullable=False)
    model = Column(String(120), nullable=False, default="")
    frame_type = Column(String(60), default="")
    material = Column(String(60), default="")
    color = Column(String(60), default="")
    gender = Column(String(20), default="")
    size = Column(String(30), default="")
    shape = Column(String(60), default="")

    purchase_price = Column(Money, nullable=False, default=Decimal("0.00"))
    selling_price = Column(Money, nullable=False, default=Decimal("0.00"))

    stock_quantity = Column(Integer, nullable=False, default=0)
    minimum_stock_level = Column(Integer, nullable=False, default=0)
    description = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    complete_glasses = relationship("CompleteGlasses", back_populates="frame")

    @property
    def full_name(self) -> str:
        return f"{self.brand} {self.model}".strip()


class LensType(Base):
    __tablename__ = "lens_types"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_lens_types_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    type = Column(String(60), default="")
    material = Column(String(60), default="")
    coating = Column(String(60), default="")
    price = Column(Money, nullable=False, default=Decimal("0.00"))

    stock_quantity = Column(Integer, nullable=False, default=0)
    minimum_stock_level = Column(Integer, nullable=False, default=0)
    description = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    complete_glasses = relationship("CompleteGlasses", back_populates="lens_type")

    @property
    def full_name(self) -> str:
        return self.name


class CompleteGlasses(Base):
    """Pre-assembled frame + lens pair, stocked as its own unit."""
    __tablename__ = "complete_glasses"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_complete_glasses_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    frame_id = Column(Integer, ForeignKey("glasses.id"), nullable=True, index=True)
    lens_type_id = Column(Integer, ForeignKey("lens_types.id"), nullable=True, index=True)

    sphere_power = Column(String(20), default="")
    cylinder_power = Column(String(20), default="")
    axis = Column(String(20), default="")

    total_cost = Column(Money, nullable=False, default=Decimal("0.00"))
    selling_price = Column(Money, nullable=False, default=Decimal("0.00"))

    stock_quantity = Column(Integer, nullable=False, default=0)
    minimum_stock_level = Column(Integer, nullable=False, default=0)
    description = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    frame = relationship("Frame", back_populates="complete_glasses")
    lens_type = relationship("LensType", back_populates="complete_glasses")

    @property
    def full_name(self) -> str:
        frame_name = self.frame.full_name if self.frame else "Unknown Frame"
        lens_name = self.lens_type.name if self.lens_type else "Unknown Lens"
        power = f" ({self.sphere_power})" if self.sphere_power else ""
        return f"{frame_name} + {lens_name}{power}"


# -------------------------
# Movement ledger
# -------------------------
class StockMovement(Base):
    """
    Append-only stock audit row.
    quantity is signed (+ inbound, - outbound); new_stock = previous_stock + quantity.
    sale_id / purchase_id point at the owning document, never matched by heuristics.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint("new_stock = previous_stock + quantity", name="ck_stock_movements_snapshot"),
        Index("ix_stock_movements_item", "item_type", "item_id"),
        Index("ix_stock_movements_item_type", "item_type", "item_id", "movement_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_type = Column(String(30), nullable=False)
    item_id = Column(Integer, nullable=False)
    movement_type = Column(String(20), nullable=False)

    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)

    unit_price = Column(Money, nullable=False, default=Decimal("0.00"))
    total_amount = Column(Money, nullable=False, default=Decimal("0.00"))

    sale_id = Column(Integer, ForeignKey("optics_sales.id"), nullable=True, index=True)
    purchase_id = Column(Integer, ForeignKey("optics_purchases.id"), nullable=True, index=True)

    notes = Column(Text, default="")
    user_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
