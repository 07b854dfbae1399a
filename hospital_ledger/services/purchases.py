# FILE: hospital_ledger/services/purchases.py
"""
Vendor-aware purchase documents.

create / pay_due / update / delete keep three ledgers in step: the stock
movement owned by the purchase, the vendor balance (for the unpaid part)
and the hospital account (for cash actually paid). A purchase without a
vendor is a cash purchase and is expensed in full at once.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from hospital_ledger.core.config import settings
from hospital_ledger.models.inventory import MovementType, StockMovement
from hospital_ledger.models.purchase import OpticsPurchase, PaymentStatus
from hospital_ledger.services import hospital_account, registries, stock_ledger, vendor_balance
from hospital_ledger.services.errors import (
    InvalidOperationError,
    OverpaymentError,
    RecordNotFoundError,
)
from hospital_ledger.services.items import ItemRef, resolve
from hospital_ledger.services.money import money
from hospital_ledger.services.number_series import next_document_number
from hospital_ledger.utils.timezone import today_local

logger = logging.getLogger(__name__)

PURCHASE_SOURCE = "optics_purchase"


def derive_status(paid, total) -> PaymentStatus:
    paid = money(paid)
    if paid <= 0:
        return PaymentStatus.PENDING
    if paid >= money(total):
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def _lock_purchase(db: Session, purchase_id: int) -> OpticsPurchase:
    p = (
        db.query(OpticsPurchase)
        .filter(OpticsPurchase.id == int(purchase_id))
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not p:
        raise RecordNotFoundError("Purchase", purchase_id)
    return p


def _owned_movements(db: Session, purchase_id: int) -> List[StockMovement]:
    return (
        db.query(StockMovement)
        .filter(StockMovement.purchase_id == int(purchase_id))
        .order_by(StockMovement.id.asc())
        .all()
    )


def _set_amounts(p: OpticsPurchase, total: Decimal, paid: Decimal) -> None:
    p.total_cost = money(total)
    p.paid_amount = money(paid)
    p.due_amount = money(total - paid)
    p.payment_status = derive_status(paid, total).value


def create_purchase(db: Session, payload, user_id: Optional[int]) -> OpticsPurchase:
    ref = ItemRef.of(payload.item_type, payload.item_id)
    h = resolve(db, ref)

    qty = int(payload.quantity)
    if qty <= 0:
        raise InvalidOperationError("Quantity must be > 0")
    unit = money(payload.unit_cost)
    if unit < 0:
        raise InvalidOperationError("Unit cost cannot be negative")
    total = money(unit * qty)

    vendor = None
    if payload.vendor_id:
        vendor = vendor_balance.lock_vendor(db, payload.vendor_id)
        paid = money(payload.paid_amount)
        if paid < 0:
            raise InvalidOperationError("Paid amount cannot be negative")
        if paid > total:
            raise OverpaymentError(paid, total, "purchase total")
    else:
        # no vendor, no credit
        paid = total
    due = money(total - paid)

    d = payload.purchase_date or today_local()
    p = OpticsPurchase(
        purchase_no=next_document_number(db, "GP", d),
        vendor_id=vendor.id if vendor else None,
        item_type=ref.kind.value,
        item_id=ref.id,
        quantity=qty,
        unit_cost=unit,
        purchase_date=d,
        notes=payload.notes or "",
        added_by=user_id,
    )
    _set_amounts(p, total, paid)
    db.add(p)
    db.flush()

    stock_ledger.record(
        db,
        ref=ref,
        movement_type=MovementType.PURCHASE,
        quantity=qty,
        unit_price=unit,
        notes=f"Purchase {p.purchase_no}" + (f" from {vendor.name}" if vendor else ""),
        user_id=user_id,
        purchase_id=p.id,
    )

    if vendor and due > 0:
        vendor_balance.add_purchase_due(
            db,
            vendor_id=vendor.id,
            amount=due,
            description=f"Purchase {p.purchase_no}: {h.name} x{qty} (due {due})",
            reference_id=p.id,
            transaction_date=d,
            user_id=user_id,
        )

    if paid > 0:
        desc = f"Purchase {p.purchase_no}: {h.name} x{qty} @ {unit}"
        desc += f" from {vendor.name}" if vendor else " (cash)"
        ht = hospital_account.post_expense(
            db,
            amount=paid,
            category=settings.OPTICS_PURCHASE_CATEGORY,
            description=desc,
            transaction_date=d,
            source_type=PURCHASE_SOURCE,
            source_id=p.id,
            user_id=user_id,
        )
        p.hospital_transaction_id = ht.id
        db.flush()

    logger.info(
        "Purchase %s created %s x%d total=%s paid=%s due=%s vendor=%s",
        p.purchase_no, ref, qty, total, paid, due, p.vendor_id,
    )
    return p


def pay_due(db: Session, purchase_id: int, payload, user_id: Optional[int]) -> OpticsPurchase:
    p = _lock_purchase(db, purchase_id)
    amt = money(payload.amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")

    due = money(p.due_amount)
    if amt > due:
        logger.warning("Purchase %s payment %s rejected, due is %s", p.purchase_no, amt, due)
        raise OverpaymentError(amt, due, "purchase due")

    method_name = registries.payment_method_name(db, payload.payment_method_id)
    d = payload.payment_date or today_local()

    _set_amounts(p, money(p.total_cost), money(p.paid_amount) + amt)
    db.flush()

    desc = f"Due payment for purchase {p.purchase_no}"
    if method_name:
        desc += f" via {method_name}"
    if payload.notes:
        desc += f" - {payload.notes}"

    if p.vendor_id:
        vendor_balance.add_payment(
            db,
            vendor_id=p.vendor_id,
            amount=amt,
            description=desc,
            payment_method_id=payload.payment_method_id,
            transaction_date=d,
            reference_type=PURCHASE_SOURCE,
            reference_id=p.id,
            user_id=user_id,
        )

    hospital_account.post_expense(
        db,
        amount=amt,
        category=settings.OPTICS_VENDOR_PAYMENT_CATEGORY,
        description=desc,
        transaction_date=d,
        source_type=PURCHASE_SOURCE,
        source_id=p.id,
        user_id=user_id,
    )

    logger.info("Purchase %s paid %s, due now %s (%s)", p.purchase_no, amt, p.due_amount, p.payment_status)
    return p


def update_purchase(db: Session, purchase_id: int, payload, user_id: Optional[int]) -> OpticsPurchase:
    """
    The one canonical purchase edit: movement, vendor balance and hospital
    account move together. What was already paid stays paid; the due absorbs
    the change. A cash purchase stays fully paid, so the hospital account
    absorbs it instead.
    """
    p = _lock_purchase(db, purchase_id)

    ref = ItemRef.of(payload.item_type, payload.item_id)
    resolve(db, ref)
    qty = int(payload.quantity)
    if qty <= 0:
        raise InvalidOperationError("Quantity must be > 0")
    unit = money(payload.unit_cost)
    if unit < 0:
        raise InvalidOperationError("Unit cost cannot be negative")
    new_total = money(unit * qty)

    old_paid = money(p.paid_amount)
    old_due = money(p.due_amount)

    if p.vendor_id:
        if old_paid > new_total:
            raise OverpaymentError(old_paid, new_total, "new purchase total")
        new_paid = old_paid
    else:
        new_paid = new_total
    new_due = money(new_total - new_paid)

    movements = _owned_movements(db, p.id)
    if len(movements) != 1:
        raise InvalidOperationError(
            f"Purchase {p.purchase_no} owns {len(movements)} stock movements; expected exactly one"
        )
    stock_ledger.edit_purchase(
        db,
        movements[0].id,
        ref=ref,
        quantity=qty,
        unit_price=unit,
        notes=f"Purchase {p.purchase_no} (edited)",
    )

    if p.vendor_id:
        vendor_balance.adjust_balance(
            db,
            vendor_id=p.vendor_id,
            net_delta=new_due - old_due,
            description=f"Purchase {p.purchase_no} edited: due {old_due} -> {new_due}",
            reference_type=PURCHASE_SOURCE,
            reference_id=p.id,
            user_id=user_id,
        )
    else:
        delta = money(new_paid - old_paid)
        if delta > 0:
            hospital_account.post_expense(
                db,
                amount=delta,
                category=settings.OPTICS_PURCHASE_CATEGORY,
                description=f"Purchase {p.purchase_no} edited: cost {old_paid} -> {new_paid}",
                source_type=PURCHASE_SOURCE,
                source_id=p.id,
                user_id=user_id,
            )
        elif delta < 0:
            hospital_account.post_income(
                db,
                amount=-delta,
                category=settings.OPTICS_PURCHASE_REFUND_CATEGORY,
                description=f"Purchase {p.purchase_no} edited: cost {old_paid} -> {new_paid}",
                source_type=PURCHASE_SOURCE,
                source_id=p.id,
                user_id=user_id,
            )

    p.item_type = ref.kind.value
    p.item_id = ref.id
    p.quantity = qty
    p.unit_cost = unit
    if payload.notes is not None:
        p.notes = payload.notes
    _set_amounts(p, new_total, new_paid)
    db.flush()

    logger.info("Purchase %s updated total=%s paid=%s due=%s", p.purchase_no, new_total, new_paid, new_due)
    return p


def _settle_removal(db: Session, p: OpticsPurchase, user_id: Optional[int]) -> Tuple[Decimal, Decimal]:
    """Take the purchase's unpaid due off the vendor and give its net cash back to the hospital."""
    due = money(p.due_amount)
    if p.vendor_id and due > 0:
        vendor_balance.adjust_balance(
            db,
            vendor_id=p.vendor_id,
            net_delta=-due,
            description=f"Purchase {p.purchase_no} deleted",
            reference_type=PURCHASE_SOURCE,
            reference_id=p.id,
            user_id=user_id,
        )

    # net cash this purchase took out of the hospital account
    spent = -hospital_account.recognized_for_source(db, PURCHASE_SOURCE, p.id)
    if spent > 0:
        hospital_account.post_income(
            db,
            amount=spent,
            category=settings.OPTICS_PURCHASE_REFUND_CATEGORY,
            description=f"Purchase {p.purchase_no} deleted",
            source_type=PURCHASE_SOURCE,
            source_id=p.id,
            user_id=user_id,
        )
    return due, spent


def delete_purchase(db: Session, purchase_id: int, user_id: Optional[int]) -> Dict[str, object]:
    """Exact inverse of create plus every later due payment."""
    p = _lock_purchase(db, purchase_id)
    purchase_no = p.purchase_no

    for mv in _owned_movements(db, p.id):
        stock_ledger.revert_purchase(db, mv.id)

    due, spent = _settle_removal(db, p, user_id)

    db.delete(p)
    db.flush()

    logger.info("Purchase %s deleted; vendor due reversed %s, refunded %s", purchase_no, due, spent)
    return {"purchase_no": purchase_no, "vendor_due_reversed": due, "refunded": spent}


def discard_for_item(db: Session, ref: ItemRef, user_id: Optional[int]) -> Dict[str, Decimal]:
    """
    Settle and drop every purchase document of an item that is being deleted.
    Stock is not moved back; the item and all its movements go with it.
    """
    rows = (
        db.query(OpticsPurchase)
        .filter(OpticsPurchase.item_type == ref.kind.value, OpticsPurchase.item_id == ref.id)
        .order_by(OpticsPurchase.id.asc())
        .with_for_update()
        .all()
    )
    due_total = Decimal("0")
    spent_total = Decimal("0")
    for p in rows:
        due, spent = _settle_removal(db, p, user_id)
        due_total += due
        spent_total += spent
        for mv in _owned_movements(db, p.id):
            db.delete(mv)
        db.flush()
        db.delete(p)
        logger.info("Purchase %s dropped with %s; vendor due reversed %s, refunded %s", p.purchase_no, ref, due, spent)
    db.flush()
    return {"purchases": len(rows), "vendor_due_reversed": money(due_total), "refunded": money(spent_total)}


def get_purchase(db: Session, purchase_id: int) -> OpticsPurchase:
    p = db.get(OpticsPurchase, int(purchase_id))
    if not p:
        raise RecordNotFoundError("Purchase", purchase_id)
    return p


def list_purchases(
    db: Session,
    *,
    vendor_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[OpticsPurchase]:
    q = db.query(OpticsPurchase)
    if vendor_id:
        q = q.filter(OpticsPurchase.vendor_id == int(vendor_id))
    if status:
        q = q.filter(OpticsPurchase.payment_status == status)
    return q.order_by(OpticsPurchase.id.desc()).limit(max(1, min(int(limit), 500))).all()
