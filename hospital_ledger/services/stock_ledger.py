# FILE: hospital_ledger/services/stock_ledger.py
"""
Movement ledger.

Every change to an item's stock_quantity goes through _apply_delta() in this
module and is paired with a StockMovement row in the same unit of work, so

    stock_quantity == Σ movement.quantity   (per item)

holds after any sequence of operations. Callers never write stock_quantity.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple, Any

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from hospital_ledger.models.inventory import ItemKind, MovementType, StockMovement
from hospital_ledger.services.errors import (
    InsufficientStockError,
    InvalidOperationError,
    RecordNotFoundError,
)
from hospital_ledger.services.items import ITEM_MODELS, ItemRef, resolve
from hospital_ledger.services.money import money, weighted_average_cost

logger = logging.getLogger(__name__)


def _apply_delta(db: Session, ref: ItemRef, delta: int) -> Tuple[int, int]:
    """
    Atomic add-with-floor-check:
        UPDATE item SET stock = stock + :delta WHERE id = :id AND stock + :delta >= 0
    Returns (previous_stock, new_stock) as seen by this writer.
    """
    model = ref.model
    db.flush()

    res = db.execute(
        update(model)
        .where(model.id == ref.id, model.stock_quantity + delta >= 0)
        .values(stock_quantity=model.stock_quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        h = resolve(db, ref)  # raises InvalidLineItemError when the row is gone
        db.refresh(h.row, ["stock_quantity"])
        raise InsufficientStockError(h.name, h.stock, -delta)

    row = db.get(model, ref.id, populate_existing=True)
    new_stock = int(row.stock_quantity)
    return new_stock - delta, new_stock


def _lock_movement(db: Session, movement_id: int) -> StockMovement:
    mv = (
        db.query(StockMovement)
        .filter(StockMovement.id == int(movement_id))
        .with_for_update()
        .first()
    )
    if not mv:
        raise RecordNotFoundError("Stock movement", movement_id)
    return mv


def movement_ref(mv: StockMovement) -> ItemRef:
    return ItemRef.of(mv.item_type, mv.item_id)


def record(
    db: Session,
    *,
    ref: ItemRef,
    movement_type: MovementType,
    quantity: int,
    unit_price=0,
    notes: str = "",
    user_id: Optional[int] = None,
    sale_id: Optional[int] = None,
    purchase_id: Optional[int] = None,
) -> StockMovement:
    qty = int(quantity)
    if qty == 0:
        raise InvalidOperationError("Movement quantity must be non-zero")

    if movement_type == MovementType.SALE and qty > 0:
        raise InvalidOperationError("Sale movements are outbound")

    unit = money(unit_price)

    # frame cost is a running weighted average, recomputed on restock
    if movement_type == MovementType.PURCHASE and qty > 0 and ref.kind == ItemKind.FRAME:
        h = resolve(db, ref, lock=True)
        h.row.purchase_price = weighted_average_cost(h.row.purchase_price, h.stock, unit, qty)

    previous_stock, new_stock = _apply_delta(db, ref, qty)

    mv = StockMovement(
        item_type=ref.kind.value,
        item_id=ref.id,
        movement_type=movement_type.value,
        quantity=qty,
        previous_stock=previous_stock,
        new_stock=new_stock,
        unit_price=unit,
        total_amount=money(unit * qty),
        notes=notes or "",
        user_id=user_id,
        sale_id=sale_id,
        purchase_id=purchase_id,
    )
    db.add(mv)
    db.flush()

    logger.info(
        "Stock %s %s qty=%+d %d->%d (sale=%s purchase=%s)",
        movement_type.value, ref, qty, previous_stock, new_stock, sale_id, purchase_id,
    )
    return mv


def revert_purchase(db: Session, movement_id: int) -> StockMovement:
    """
    Take a purchase entry's quantity back off the item's *current* stock and
    delete the entry. Stock sold since the purchase makes this fail.
    """
    mv = _lock_movement(db, movement_id)
    if mv.movement_type != MovementType.PURCHASE.value:
        raise InvalidOperationError(
            f"Only purchase movements can be reverted here (movement #{mv.id} is '{mv.movement_type}')"
        )

    ref = movement_ref(mv)
    _apply_delta(db, ref, -int(mv.quantity))
    db.delete(mv)
    db.flush()

    logger.info("Reverted purchase movement #%s %s qty=%s", mv.id, ref, mv.quantity)
    return mv


def edit_purchase(
    db: Session,
    movement_id: int,
    *,
    ref: ItemRef,
    quantity: int,
    unit_price,
    notes: Optional[str] = None,
) -> StockMovement:
    """
    Re-point / re-size a purchase entry.

    A changed item is handled as two stock mutations (old item down, new item
    up). The entry's own snapshots are rewritten; later entries keep theirs.
    """
    mv = _lock_movement(db, movement_id)
    if mv.movement_type != MovementType.PURCHASE.value:
        raise InvalidOperationError(
            f"Only purchase movements can be edited here (movement #{mv.id} is '{mv.movement_type}')"
        )

    new_qty = int(quantity)
    if new_qty <= 0:
        raise InvalidOperationError("Purchase quantity must be > 0")

    old_ref = movement_ref(mv)
    old_qty = int(mv.quantity)

    if old_ref != ref:
        resolve(db, ref)  # reject unknown targets before touching the old item
        _apply_delta(db, old_ref, -old_qty)
        _, new_stock = _apply_delta(db, ref, new_qty)
    elif new_qty != old_qty:
        _, new_stock = _apply_delta(db, ref, new_qty - old_qty)
    else:
        new_stock = resolve(db, ref, lock=True).stock

    unit = money(unit_price)
    mv.item_type = ref.kind.value
    mv.item_id = ref.id
    mv.quantity = new_qty
    mv.previous_stock = new_stock - new_qty
    mv.new_stock = new_stock
    mv.unit_price = unit
    mv.total_amount = money(unit * new_qty)
    if notes is not None:
        mv.notes = notes
    db.flush()

    logger.info("Edited purchase movement #%s %s -> %s qty %s -> %s", mv.id, old_ref, ref, old_qty, new_qty)
    return mv


def revert_sale(db: Session, sale_id: int) -> List[Dict[str, Any]]:
    """
    Put back the stock of every movement owned by a sale and delete them.
    Matched by the sale_id foreign key only.
    """
    movements = (
        db.query(StockMovement)
        .filter(StockMovement.sale_id == int(sale_id))
        .order_by(StockMovement.id.asc())
        .with_for_update()
        .all()
    )

    restored: List[Dict[str, Any]] = []
    for mv in movements:
        ref = movement_ref(mv)
        _, new_stock = _apply_delta(db, ref, -int(mv.quantity))
        restored.append({"ref": ref, "quantity": -int(mv.quantity), "new_stock": new_stock})
        db.delete(mv)

    db.flush()
    if restored:
        logger.info("Restored stock for sale #%s: %s", sale_id, [(str(r["ref"]), r["quantity"]) for r in restored])
    return restored


def adjust_stock(
    db: Session,
    *,
    ref: ItemRef,
    quantity: int,
    notes: str = "",
    user_id: Optional[int] = None,
) -> StockMovement:
    h = resolve(db, ref)
    return record(
        db,
        ref=ref,
        movement_type=MovementType.ADJUSTMENT,
        quantity=quantity,
        unit_price=h.cost_price,
        notes=notes or "Manual stock adjustment",
        user_id=user_id,
    )


def delete_item_movements(db: Session, ref: ItemRef) -> int:
    """Drop every movement of an item that is being deleted; returns the count."""
    n = (
        db.query(StockMovement)
        .filter(StockMovement.item_type == ref.kind.value, StockMovement.item_id == ref.id)
        .delete(synchronize_session=False)
    )
    db.flush()
    return int(n or 0)


def has_sale_history(db: Session, ref: ItemRef) -> bool:
    return (
        db.query(StockMovement.id)
        .filter(
            StockMovement.item_type == ref.kind.value,
            StockMovement.item_id == ref.id,
            StockMovement.movement_type == MovementType.SALE.value,
        )
        .first()
        is not None
    )


def movements_for(db: Session, ref: ItemRef) -> List[StockMovement]:
    return (
        db.query(StockMovement)
        .filter(StockMovement.item_type == ref.kind.value, StockMovement.item_id == ref.id)
        .order_by(StockMovement.id.asc())
        .all()
    )


# -------------------------
# Replay / verification
# -------------------------
def stock_from_movements(db: Session, ref: ItemRef) -> int:
    total = (
        db.query(func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(StockMovement.item_type == ref.kind.value, StockMovement.item_id == ref.id)
        .scalar()
    )
    return int(total or 0)


def verify_stock(db: Session, ref: ItemRef) -> bool:
    h = resolve(db, ref)
    return h.stock == stock_from_movements(db, ref)


def stock_drift_report(db: Session) -> List[Dict[str, Any]]:
    """Items whose cached stock differs from the replayed ledger."""
    drift: List[Dict[str, Any]] = []

    for kind, model in ITEM_MODELS.items():
        sums = dict(
            db.query(StockMovement.item_id, func.sum(StockMovement.quantity))
            .filter(StockMovement.item_type == kind.value)
            .group_by(StockMovement.item_id)
            .all()
        )
        for row in db.query(model).order_by(model.id.asc()).all():
            replayed = int(sums.get(row.id) or 0)
            cached = int(row.stock_quantity or 0)
            if replayed != cached:
                drift.append({
                    "item_type": kind.value,
                    "item_id": row.id,
                    "name": row.full_name,
                    "cached": cached,
                    "replayed": replayed,
                    "difference": cached - replayed,
                })

    if drift:
        logger.warning("Stock drift detected on %d item(s)", len(drift))
    return drift
