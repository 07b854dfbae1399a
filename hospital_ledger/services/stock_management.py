# FILE: hospital_ledger/services/stock_management.py
"""
Low-level "stock management" screen.

A stock-in is a purchase: with a vendor it becomes a purchase document
(see purchases), without one it is a cash purchase expensed to the
hospital account under "Optics Purchase". The quick edit/delete below work
on vendor-less stock-ins only and settle with the shop account.
Anything owned by a purchase document or a sale is edited through
purchases / sales instead.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from hospital_ledger.core.config import settings
from hospital_ledger.models.accounts import EntryType
from hospital_ledger.models.inventory import MovementType, StockMovement
from hospital_ledger.schemas.optics_purchase import PurchaseCreate
from hospital_ledger.services import hospital_account, purchases, shop_account, stock_ledger
from hospital_ledger.services.errors import InvalidOperationError, RecordNotFoundError
from hospital_ledger.services.items import ItemRef, resolve
from hospital_ledger.services.money import money

logger = logging.getLogger(__name__)

MOVEMENT_SOURCE = "stock_movement"
STOCK_ADJUSTMENT_CATEGORY = "Stock Adjustment"
STOCK_REFUND_CATEGORY = "Stock Deletion Refund"


def _quick_movement(db: Session, movement_id: int) -> StockMovement:
    mv = db.get(StockMovement, int(movement_id))
    if not mv:
        raise RecordNotFoundError("Stock movement", movement_id)
    if mv.movement_type != MovementType.PURCHASE.value:
        raise InvalidOperationError("Only stock-in (purchase) movements can be changed here")
    if mv.sale_id is not None:
        raise InvalidOperationError("Movement belongs to a sale; edit the sale instead")
    if mv.purchase_id is not None:
        raise InvalidOperationError(
            f"Movement belongs to purchase #{mv.purchase_id}; edit the purchase instead"
        )
    return mv


def stock_in(
    db: Session,
    *,
    ref: ItemRef,
    quantity: int,
    unit_price,
    vendor_id: Optional[int] = None,
    paid_amount=0,
    notes: str = "",
    user_id: Optional[int] = None,
) -> StockMovement:
    qty = int(quantity)
    if qty <= 0:
        raise InvalidOperationError("Quantity must be > 0")
    unit = money(unit_price)
    if unit < 0:
        raise InvalidOperationError("Unit price cannot be negative")

    if vendor_id:
        p = purchases.create_purchase(
            db,
            PurchaseCreate(
                vendor_id=vendor_id,
                item_type=ref.kind.value,
                item_id=ref.id,
                quantity=qty,
                unit_cost=unit,
                paid_amount=money(paid_amount or 0),
                notes=notes or "Stock added",
            ),
            user_id=user_id,
        )
        return db.query(StockMovement).filter(StockMovement.purchase_id == p.id).one()

    h = resolve(db, ref)
    mv = stock_ledger.record(
        db,
        ref=ref,
        movement_type=MovementType.PURCHASE,
        quantity=qty,
        unit_price=unit,
        notes=notes or "Stock added",
        user_id=user_id,
    )

    total = money(mv.total_amount)
    if total > 0:
        hospital_account.post_expense(
            db,
            amount=total,
            category=settings.OPTICS_PURCHASE_CATEGORY,
            description=f"Stock purchase: {h.name} x{qty} @ {unit} (cash)",
            source_type=MOVEMENT_SOURCE,
            source_id=mv.id,
            user_id=user_id,
        )
    return mv


def quick_edit_movement(
    db: Session,
    movement_id: int,
    *,
    ref: ItemRef,
    quantity: int,
    unit_price,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> StockMovement:
    """Ledger-only edit; the cost difference goes to the shop account (more cost -> expense)."""
    mv = _quick_movement(db, movement_id)
    old_total = money(mv.total_amount)

    mv = stock_ledger.edit_purchase(db, mv.id, ref=ref, quantity=quantity, unit_price=unit_price, notes=notes)
    delta: Decimal = money(mv.total_amount) - old_total

    shop_account.adjust_amount(
        db,
        amount=-delta,
        category=STOCK_ADJUSTMENT_CATEGORY,
        description=f"Stock movement #{mv.id} edited: {old_total} -> {money(mv.total_amount)}",
        reference_type=MOVEMENT_SOURCE,
        reference_id=mv.id,
        user_id=user_id,
    )
    return mv


def quick_delete_movement(db: Session, movement_id: int, *, user_id: Optional[int] = None) -> Decimal:
    """Ledger-only delete; the movement's cost comes back to the shop account. Returns it."""
    mv = _quick_movement(db, movement_id)
    mv_id = mv.id
    refund = money(mv.total_amount)

    stock_ledger.revert_purchase(db, mv_id)

    shop_account.adjust_amount(
        db,
        amount=refund,
        category=STOCK_REFUND_CATEGORY,
        description=f"Stock movement #{mv_id} deleted",
        reference_type=MOVEMENT_SOURCE,
        reference_id=mv_id,
        user_id=user_id,
    )
    logger.info("Quick-deleted stock movement #%s refund=%s", mv_id, refund)
    return refund


def settle_for_item(db: Session, ref: ItemRef, user_id: Optional[int] = None) -> Dict[str, Decimal]:
    """
    Undo the money side of every vendor-less stock-in still on an item that is
    being deleted: the hospital gets its cash back, the shop loses what quick
    edits credited it (or regains what they charged).
    """
    mvs = (
        db.query(StockMovement)
        .filter(
            StockMovement.item_type == ref.kind.value,
            StockMovement.item_id == ref.id,
            StockMovement.movement_type == MovementType.PURCHASE.value,
            StockMovement.purchase_id.is_(None),
        )
        .order_by(StockMovement.id.asc())
        .all()
    )
    refunded = Decimal("0")
    shop_reversed = Decimal("0")
    for mv in mvs:
        spent = -hospital_account.recognized_for_source(db, MOVEMENT_SOURCE, mv.id)
        if spent > 0:
            hospital_account.post_income(
                db,
                amount=spent,
                category=settings.OPTICS_PURCHASE_REFUND_CATEGORY,
                description=f"Stock movement #{mv.id} removed with its item",
                source_type=MOVEMENT_SOURCE,
                source_id=mv.id,
                user_id=user_id,
            )
            refunded += spent

        shop_net = sum(
            (money(t.amount) if t.type == EntryType.INCOME.value else -money(t.amount)
             for t in shop_account.entries_for(db, MOVEMENT_SOURCE, mv.id)),
            Decimal("0"),
        )
        if shop_net != 0:
            shop_account.adjust_amount(
                db,
                amount=-shop_net,
                category=STOCK_ADJUSTMENT_CATEGORY,
                description=f"Stock movement #{mv.id} removed with its item",
                reference_type=MOVEMENT_SOURCE,
                reference_id=mv.id,
                user_id=user_id,
            )
            shop_reversed += shop_net

    return {"refunded": money(refunded), "shop_reversed": money(shop_reversed)}
