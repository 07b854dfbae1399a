# FILE: hospital_ledger/services/items.py
"""
Item identity and resolution.

ItemRef is the one value that names an inventory item across the three
backing tables; resolve() is the only place that maps it to a row.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Type, Union

from sqlalchemy.orm import Session

from hospital_ledger.models.inventory import ItemKind, Frame, LensType, CompleteGlasses
from hospital_ledger.services.errors import InvalidLineItemError
from hospital_ledger.services.money import money

ItemRow = Union[Frame, LensType, CompleteGlasses]

ITEM_MODELS: Dict[ItemKind, Type[Any]] = {
    ItemKind.FRAME: Frame,
    ItemKind.LENS: LensType,
    ItemKind.COMPLETE_GLASSES: CompleteGlasses,
}

# POS screens send short tags; stock screens send table names
KIND_ALIASES: Dict[str, ItemKind] = {
    "frame": ItemKind.FRAME,
    "glasses": ItemKind.FRAME,
    "lens": ItemKind.LENS,
    "lens_types": ItemKind.LENS,
    "complete_glasses": ItemKind.COMPLETE_GLASSES,
}


def parse_kind(value: Union[str, ItemKind]) -> ItemKind:
    if isinstance(value, ItemKind):
        return value
    kind = KIND_ALIASES.get(str(value or "").strip().lower())
    if kind is None:
        raise InvalidLineItemError(f"Unknown item type: {value!r}")
    return kind


@dataclass(frozen=True)
class ItemRef:
    kind: ItemKind
    id: int

    @classmethod
    def of(cls, kind: Union[str, ItemKind], item_id) -> "ItemRef":
        try:
            iid = int(item_id)
        except (TypeError, ValueError):
            raise InvalidLineItemError(f"Invalid item id: {item_id!r}")
        return cls(parse_kind(kind), iid)

    @classmethod
    def frame(cls, item_id: int) -> "ItemRef":
        return cls(ItemKind.FRAME, int(item_id))

    @classmethod
    def lens(cls, item_id: int) -> "ItemRef":
        return cls(ItemKind.LENS, int(item_id))

    @classmethod
    def complete_glasses(cls, item_id: int) -> "ItemRef":
        return cls(ItemKind.COMPLETE_GLASSES, int(item_id))

    @property
    def model(self) -> Type[Any]:
        return ITEM_MODELS[self.kind]

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass
class ItemHandle:
    ref: ItemRef
    row: ItemRow

    @property
    def name(self) -> str:
        return self.row.full_name

    @property
    def stock(self) -> int:
        return int(self.row.stock_quantity or 0)

    @property
    def cost_price(self) -> Decimal:
        if self.ref.kind == ItemKind.FRAME:
            return money(self.row.purchase_price)
        if self.ref.kind == ItemKind.LENS:
            return money(self.row.price)
        return money(self.row.total_cost)

    @property
    def selling_price(self) -> Decimal:
        if self.ref.kind == ItemKind.LENS:
            return money(self.row.price)
        return money(self.row.selling_price)

    @property
    def is_active(self) -> bool:
        return bool(self.row.is_active)


def resolve(db: Session, ref: ItemRef, *, lock: bool = False) -> ItemHandle:
    q = db.query(ref.model).filter(ref.model.id == ref.id)
    if lock:
        # locked reads must see the committed row, not a stale identity-map copy
        q = q.with_for_update().populate_existing()
    row = q.first()
    if not row:
        raise InvalidLineItemError(f"{ref.kind.value} item #{ref.id} not found")
    return ItemHandle(ref=ref, row=row)


def try_resolve(db: Session, ref: ItemRef) -> Optional[ItemHandle]:
    row = db.get(ref.model, ref.id)
    return ItemHandle(ref=ref, row=row) if row else None
