# FILE: hospital_ledger/services/catalogue.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from hospital_ledger.models.inventory import ItemKind, CompleteGlasses
from hospital_ledger.schemas.optics_purchase import PurchaseCreate
from hospital_ledger.services import purchases, stock_ledger, stock_management
from hospital_ledger.services.errors import DeletionBlockedError, InvalidOperationError
from hospital_ledger.services.items import ITEM_MODELS, ItemHandle, ItemRef, parse_kind, resolve
from hospital_ledger.services.money import money

logger = logging.getLogger(__name__)

# editable columns per table; stock_quantity is never among them
ITEM_FIELDS: Dict[ItemKind, tuple] = {
    ItemKind.FRAME: (
        "sku", "brand", "model", "frame_type", "material", "color", "gender",
        "size", "shape", "purchase_price", "selling_price", "minimum_stock_level",
        "description", "is_active",
    ),
    ItemKind.LENS: (
        "name", "type", "material", "coating", "price", "minimum_stock_level",
        "description", "is_active",
    ),
    ItemKind.COMPLETE_GLASSES: (
        "sku", "frame_id", "lens_type_id", "sphere_power", "cylinder_power", "axis",
        "total_cost", "selling_price", "minimum_stock_level", "description", "is_active",
    ),
}

MONEY_FIELDS = {"purchase_price", "selling_price", "price", "total_cost"}

REQUIRED_FIELDS: Dict[ItemKind, tuple] = {
    ItemKind.FRAME: ("sku", "brand"),
    ItemKind.LENS: ("name",),
    ItemKind.COMPLETE_GLASSES: ("sku",),
}


def _apply_fields(kind: ItemKind, row, fields: Dict[str, Any]) -> None:
    allowed = ITEM_FIELDS[kind]
    for k, v in (fields or {}).items():
        if k not in allowed or v is None:
            continue
        if k in MONEY_FIELDS:
            v = money(v)
            if v < 0:
                raise InvalidOperationError(f"{k} cannot be negative")
        if k == "minimum_stock_level" and int(v) < 0:
            raise InvalidOperationError("minimum_stock_level cannot be negative")
        setattr(row, k, v)


def create_item(
    db: Session,
    *,
    kind,
    fields: Dict[str, Any],
    opening_stock: int = 0,
    vendor_id: Optional[int] = None,
    paid_amount=0,
    user_id: Optional[int] = None,
) -> ItemHandle:
    """
    Opening stock is bought at the item's cost through a purchase document:
    the vendor carries the unpaid part, the hospital pays the rest (all of it
    when there is no vendor).
    """
    k = parse_kind(kind)
    opening = int(opening_stock or 0)
    if opening < 0:
        raise InvalidOperationError("Opening stock cannot be negative")

    missing = [f for f in REQUIRED_FIELDS[k] if not str((fields or {}).get(f) or "").strip()]
    if missing:
        raise InvalidOperationError(f"Missing required field(s): {', '.join(missing)}")

    row = ITEM_MODELS[k](stock_quantity=0)
    _apply_fields(k, row, fields)
    db.add(row)
    db.flush()

    ref = ItemRef(k, row.id)
    h = ItemHandle(ref=ref, row=row)
    if opening > 0:
        purchases.create_purchase(
            db,
            PurchaseCreate(
                vendor_id=vendor_id,
                item_type=k.value,
                item_id=ref.id,
                quantity=opening,
                unit_cost=h.cost_price,
                paid_amount=money(paid_amount or 0),
                notes="Opening stock",
            ),
            user_id=user_id,
        )

    logger.info("Created %s %r opening_stock=%s vendor=%s", ref, h.name, opening, vendor_id)
    return h


def update_item(db: Session, ref: ItemRef, fields: Dict[str, Any]) -> ItemHandle:
    h = resolve(db, ref, lock=True)
    _apply_fields(ref.kind, h.row, fields)
    db.flush()
    return h


def set_item_active(db: Session, ref: ItemRef, active: bool) -> ItemHandle:
    h = resolve(db, ref, lock=True)
    h.row.is_active = bool(active)
    db.flush()
    return h


def delete_item(db: Session, ref: ItemRef, *, user_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Hard delete. Refused while the item has sale history or is part of a
    complete-glasses unit.

    Whatever its stock cost is given back where it was paid from: each
    purchase document is settled (vendor due dropped, hospital cash
    refunded) and so is each vendor-less stock-in. Stock counted in by
    adjustment cost nothing and refunds nothing.
    """
    h = resolve(db, ref, lock=True)

    if stock_ledger.has_sale_history(db, ref):
        logger.warning("Delete of %s blocked: sale history exists", ref)
        raise DeletionBlockedError(f"Cannot delete {h.name}: it has sales history")

    if ref.kind in (ItemKind.FRAME, ItemKind.LENS):
        fk = CompleteGlasses.frame_id if ref.kind == ItemKind.FRAME else CompleteGlasses.lens_type_id
        if db.query(CompleteGlasses.id).filter(fk == ref.id).first():
            raise DeletionBlockedError(f"Cannot delete {h.name}: it is used by complete glasses")

    name = h.name
    stock = h.stock

    docs = purchases.discard_for_item(db, ref, user_id)
    quick = stock_management.settle_for_item(db, ref, user_id)

    stock_ledger.delete_item_movements(db, ref)
    db.delete(h.row)
    db.flush()

    summary = {
        "stock": stock,
        "purchases": docs["purchases"],
        "vendor_due_reversed": docs["vendor_due_reversed"],
        "refunded": money(docs["refunded"] + quick["refunded"]),
        "shop_reversed": quick["shop_reversed"],
    }
    logger.info("Deleted %s %r %s", ref, name, summary)
    return summary


def list_items(db: Session, kind, *, active_only: bool = False) -> List[ItemHandle]:
    k = parse_kind(kind)
    model = ITEM_MODELS[k]
    q = db.query(model)
    if active_only:
        q = q.filter(model.is_active.is_(True))
    return [ItemHandle(ref=ItemRef(k, r.id), row=r) for r in q.order_by(model.id.asc()).all()]


def low_stock_items(db: Session) -> List[ItemHandle]:
    out: List[ItemHandle] = []
    for k, model in ITEM_MODELS.items():
        rows = (
            db.query(model)
            .filter(
                model.is_active.is_(True),
                model.stock_quantity <= model.minimum_stock_level,
            )
            .order_by(model.stock_quantity.asc(), model.id.asc())
            .all()
        )
        out.extend(ItemHandle(ref=ItemRef(k, r.id), row=r) for r in rows)
    return out
