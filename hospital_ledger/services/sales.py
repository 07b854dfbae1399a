# FILE: hospital_ledger/services/sales.py
"""
Optics sale aggregate (header + line items + payments).

create / update / delete each run as one unit of work over the movement
ledger, the shop account and the hospital account. Ordering inside a unit:
validate everything, then move stock, then post money.

Only cash that changed hands is posted to the hospital account. An update
rebuilds the shop side but never re-posts hospital income; a delete
reverses whatever hospital income the sale had recognised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from hospital_ledger.core.config import settings
from hospital_ledger.models.inventory import MovementType, StockMovement
from hospital_ledger.models.patient import Patient
from hospital_ledger.models.sale import OpticsSale, OpticsSaleItem, OpticsSalePayment, SaleStatus
from hospital_ledger.services import hospital_account, shop_account, stock_ledger
from hospital_ledger.services.errors import (
    InsufficientStockError,
    InvalidLineItemError,
    InvalidOperationError,
    OverpaymentError,
    PaymentIncompleteError,
    RecordNotFoundError,
)
from hospital_ledger.services.items import ItemHandle, ItemRef, resolve
from hospital_ledger.services.money import money
from hospital_ledger.services.number_series import next_document_number
from hospital_ledger.utils.timezone import today_local

logger = logging.getLogger(__name__)

SALE_SOURCE = "optics_sale"
WALK_IN = "Walk-in Customer"

SALE_UPDATE_REVERSAL = "Sale Update Reversal"
SALE_DELETION = "Sale Deletion"
SALE_INCOME = "Optics Sale"


@dataclass
class _Line:
    handle: ItemHandle
    quantity: int
    unit_price: Decimal

    @property
    def ref(self) -> ItemRef:
        return self.handle.ref

    @property
    def total(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    @property
    def label(self) -> str:
        return f"{self.handle.name} x{self.quantity}"


@dataclass
class _Totals:
    items_total: Decimal
    fitting: Decimal
    discount: Decimal
    total: Decimal
    advance: Decimal

    @property
    def due(self) -> Decimal:
        return money(self.total - self.advance)


def _cur(x) -> str:
    return f"{settings.CURRENCY_SYMBOL}{money(x):,.2f}"


# -------------------------
# Validation (no writes)
# -------------------------
def _lock_sale(db: Session, sale_id: int) -> OpticsSale:
    sale = (
        db.query(OpticsSale)
        .filter(OpticsSale.id == int(sale_id))
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not sale:
        raise RecordNotFoundError("Sale", sale_id)
    return sale


def _resolve_customer(db: Session, payload) -> Tuple[Optional[int], str, Optional[str], Optional[str]]:
    """Linked patient's fields win over free text; blank walk-in name -> 'Walk-in Customer'."""
    if payload.customer_id:
        p = db.get(Patient, int(payload.customer_id))
        if p:
            return p.id, p.name, p.phone, p.email

    name = (payload.customer_name or "").strip() or WALK_IN
    phone = (payload.customer_phone or "").strip() or None
    email = (payload.customer_email or "").strip() or None
    return None, name, phone, email


def _check_method(method: str) -> str:
    m = (method or "").strip().lower()
    if m not in settings.SALE_PAYMENT_METHODS:
        raise InvalidOperationError(
            f"Unsupported payment method {method!r}; use one of {', '.join(settings.SALE_PAYMENT_METHODS)}"
        )
    return m


def _build_lines(db: Session, payload, owned: Optional[Dict[ItemRef, int]] = None) -> List[_Line]:
    """Items the sale already holds (`owned`, on update) may since have been deactivated."""
    lines: List[_Line] = []
    for it in payload.items or []:
        ref = ItemRef.of(it.type, it.id)
        h = resolve(db, ref)
        if not h.is_active and ref not in (owned or {}):
            raise InvalidLineItemError(f"{h.name} is inactive")
        qty = int(it.quantity)
        if qty <= 0:
            raise InvalidLineItemError(f"Quantity for {h.name} must be > 0")
        unit = money(it.price) if it.price is not None else h.selling_price
        lines.append(_Line(handle=h, quantity=qty, unit_price=unit))

    if not lines and money(payload.glass_fitting_price) <= 0:
        raise InvalidLineItemError("A sale needs at least one item or a fitting charge")
    return lines


def _compute_totals(lines: List[_Line], payload) -> _Totals:
    items_total = money(sum((ln.total for ln in lines), Decimal("0")))
    fitting = money(payload.glass_fitting_price)
    discount = money(payload.discount)
    advance = money(payload.advance_payment)

    if discount > items_total + fitting:
        raise InvalidOperationError(f"Discount {discount} exceeds sale value {items_total + fitting}")

    total = money(items_total + fitting - discount)
    if advance > total:
        raise OverpaymentError(advance, total, "sale total")

    return _Totals(items_total=items_total, fitting=fitting, discount=discount, total=total, advance=advance)


def _precheck_stock(lines: List[_Line], returning: Optional[Dict[ItemRef, int]] = None) -> None:
    """
    Fail the whole sale before any stock moves. Duplicate lines are summed;
    `returning` credits stock this same sale is about to give back (update).
    """
    wanted: Dict[ItemRef, int] = {}
    handles: Dict[ItemRef, ItemHandle] = {}
    for ln in lines:
        wanted[ln.ref] = wanted.get(ln.ref, 0) + ln.quantity
        handles[ln.ref] = ln.handle

    for ref, qty in wanted.items():
        available = handles[ref].stock + (returning or {}).get(ref, 0)
        if available < qty:
            logger.warning("Sale rejected: %s needs %d, %d available", ref, qty, available)
            raise InsufficientStockError(handles[ref].name, available, qty)


# -------------------------
# Writes
# -------------------------
def _apply_lines(db: Session, sale: OpticsSale, lines: List[_Line], user_id: Optional[int]) -> None:
    for ln in lines:
        stock_ledger.record(
            db,
            ref=ln.ref,
            movement_type=MovementType.SALE,
            quantity=-ln.quantity,
            unit_price=ln.unit_price,
            notes=f"Sale {sale.invoice_number} - {ln.label}",
            user_id=user_id,
            sale_id=sale.id,
        )
        sale.items.append(
            OpticsSaleItem(
                item_type=ln.ref.kind.value,
                item_id=ln.ref.id,
                item_name=ln.handle.name,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                total_price=ln.total,
            )
        )
    db.flush()


def _describe(sale: OpticsSale, label: str, totals: _Totals, lines: List[_Line], amount: Decimal) -> str:
    """Human-readable breakdown kept on the income rows as the sale-time audit text."""
    desc = f"{label} - Invoice: {sale.invoice_number} | Customer: {sale.customer_name}"
    if sale.customer_phone:
        desc += f" ({sale.customer_phone})"
    desc += f" | Total Amount: {_cur(totals.total)}"
    desc += f" | Advance: {_cur(amount)}"
    desc += f" | Due: {_cur(totals.due)}"
    if lines:
        desc += " | Items: " + ", ".join(ln.label for ln in lines)
    if totals.fitting > 0:
        desc += f" | Fitting: {_cur(totals.fitting)}"
    if totals.discount > 0:
        desc += f" | Discount: {_cur(totals.discount)}"
    if sale.notes:
        desc += f" | Notes: {sale.notes}"
    return desc


def _take_advance(
    db: Session,
    sale: OpticsSale,
    payload,
    totals: _Totals,
    lines: List[_Line],
    user_id: Optional[int],
    *,
    recognize: bool,
) -> None:
    if totals.advance <= 0:
        return

    sale.payments.append(
        OpticsSalePayment(
            amount=totals.advance,
            payment_method=_check_method(payload.payment_method),
            transaction_id=payload.transaction_id,
            notes="Advance Payment",
            received_by=user_id,
        )
    )
    db.flush()

    desc = _describe(sale, "Advance Payment", totals, lines, totals.advance)
    shop_account.post_income(
        db,
        amount=totals.advance,
        category=SALE_INCOME,
        description=desc,
        reference_type=SALE_SOURCE,
        reference_id=sale.id,
        user_id=user_id,
    )
    if recognize:
        hospital_account.post_income(
            db,
            amount=totals.advance,
            category=settings.OPTICS_INCOME_CATEGORY,
            description=desc,
            source_type=SALE_SOURCE,
            source_id=sale.id,
            user_id=user_id,
        )


def _set_header(sale: OpticsSale, customer, totals: _Totals, payload) -> None:
    patient_id, name, phone, email = customer
    sale.patient_id = patient_id
    sale.customer_name = name
    sale.customer_phone = phone
    sale.customer_email = email
    sale.glass_fitting_price = totals.fitting
    sale.discount = totals.discount
    sale.total_amount = totals.total
    sale.advance_payment = totals.advance
    sale.due_amount = totals.due
    sale.notes = payload.notes or ""


# -------------------------
# Operations
# -------------------------
def create_sale(db: Session, payload, user_id: Optional[int]) -> OpticsSale:
    customer = _resolve_customer(db, payload)
    lines = _build_lines(db, payload)
    totals = _compute_totals(lines, payload)
    if totals.advance > 0:
        _check_method(payload.payment_method)
    _precheck_stock(lines)

    sale = OpticsSale(
        invoice_number=next_document_number(db, "OPT"),
        seller_id=user_id,
        status=SaleStatus.PENDING.value,
    )
    _set_header(sale, customer, totals, payload)
    db.add(sale)
    db.flush()

    _apply_lines(db, sale, lines, user_id)
    _take_advance(db, sale, payload, totals, lines, user_id, recognize=True)

    logger.info(
        "Sale %s created total=%s advance=%s due=%s lines=%d",
        sale.invoice_number, sale.total_amount, sale.advance_payment, sale.due_amount, len(lines),
    )
    return sale


def update_sale(db: Session, sale_id: int, payload, user_id: Optional[int]) -> OpticsSale:
    """
    Destructive rebuild on the same sale id: give back the old stock,
    reverse every old payment from the shop account, then apply the new
    inputs as a fresh create. Hospital income is left as already recognised.
    """
    sale = _lock_sale(db, sale_id)

    returning: Dict[ItemRef, int] = {}
    for mv in db.query(StockMovement).filter(StockMovement.sale_id == sale.id).all():
        ref = ItemRef.of(mv.item_type, mv.item_id)
        returning[ref] = returning.get(ref, 0) - int(mv.quantity)

    customer = _resolve_customer(db, payload)
    lines = _build_lines(db, payload, owned=returning)
    totals = _compute_totals(lines, payload)
    if totals.advance > 0:
        _check_method(payload.payment_method)
    if sale.status == SaleStatus.DELIVERED.value and totals.due > 0:
        raise PaymentIncompleteError(totals.due)

    _precheck_stock(lines, returning)

    # (a) stock back + movements gone, (b) old lines gone
    stock_ledger.revert_sale(db, sale.id)
    sale.items.clear()

    # (c) reverse old payments on the shop side, (d) drop them
    old_paid = money(sale.total_paid)
    if old_paid > 0:
        shop_account.post_expense(
            db,
            amount=old_paid,
            category=SALE_UPDATE_REVERSAL,
            description=f"Reversed payments for sale update - Invoice: {sale.invoice_number}",
            reference_type=SALE_SOURCE,
            reference_id=sale.id,
            user_id=user_id,
        )
    sale.payments.clear()
    db.flush()

    # (e) rebuild
    _set_header(sale, customer, totals, payload)
    _apply_lines(db, sale, lines, user_id)
    _take_advance(db, sale, payload, totals, lines, user_id, recognize=False)

    logger.info(
        "Sale %s updated total=%s advance=%s due=%s (reversed %s)",
        sale.invoice_number, sale.total_amount, sale.advance_payment, sale.due_amount, old_paid,
    )
    return sale


def delete_sale(db: Session, sale_id: int, user_id: Optional[int]) -> Dict[str, object]:
    sale = _lock_sale(db, sale_id)
    invoice = sale.invoice_number

    restored = stock_ledger.revert_sale(db, sale.id)

    paid = money(sale.total_paid)
    if paid > 0:
        shop_account.post_expense(
            db,
            amount=paid,
            category=SALE_DELETION,
            description=(
                f"Reversed sale - Invoice: {invoice} | Customer: {sale.customer_name}"
                f" | Total Refunded: {_cur(paid)}"
            ),
            reference_type=SALE_SOURCE,
            reference_id=sale.id,
            user_id=user_id,
        )

    recognized = hospital_account.recognized_for_source(db, SALE_SOURCE, sale.id)
    if recognized > 0:
        hospital_account.post_expense(
            db,
            amount=recognized,
            category=settings.OPTICS_SALE_REVERSAL_CATEGORY,
            description=f"Reversed optics sale income - Invoice: {invoice}",
            source_type=SALE_SOURCE,
            source_id=sale.id,
            user_id=user_id,
        )

    db.delete(sale)
    db.flush()

    logger.info("Sale %s deleted; refunded %s, hospital reversal %s", invoice, paid, recognized)
    return {
        "invoice_number": invoice,
        "refunded": paid,
        "hospital_reversed": recognized,
        "restored_lines": len(restored),
    }


def add_payment(db: Session, sale_id: int, payload, user_id: Optional[int]) -> OpticsSalePayment:
    """Collect part of the due; posted to both accounts with today's date."""
    sale = _lock_sale(db, sale_id)
    amt = money(payload.amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")

    due = money(sale.due_amount)
    if amt > due:
        logger.warning("Sale %s payment %s rejected, due is %s", sale.invoice_number, amt, due)
        raise OverpaymentError(amt, due, "sale due")

    method = _check_method(payload.payment_method)
    pay = OpticsSalePayment(
        amount=amt,
        payment_method=method,
        transaction_id=payload.transaction_id,
        notes=payload.notes or "Due Payment",
        received_by=user_id,
    )
    sale.payments.append(pay)
    sale.due_amount = money(due - amt)
    db.flush()

    today = today_local()
    desc = (
        f"Due Payment - Invoice: {sale.invoice_number} | Customer: {sale.customer_name}"
        f" | Paid: {_cur(amt)} via {method} | Remaining Due: {_cur(sale.due_amount)}"
    )
    shop_account.post_income(
        db,
        amount=amt,
        category=SALE_INCOME,
        description=desc,
        transaction_date=today,
        reference_type=SALE_SOURCE,
        reference_id=sale.id,
        user_id=user_id,
    )
    hospital_account.post_income(
        db,
        amount=amt,
        category=settings.OPTICS_INCOME_CATEGORY,
        description=desc,
        transaction_date=today,
        source_type=SALE_SOURCE,
        source_id=sale.id,
        user_id=user_id,
    )

    logger.info("Sale %s payment %s, due now %s", sale.invoice_number, amt, sale.due_amount)
    return pay


def update_status(db: Session, sale_id: int, status, user_id: Optional[int] = None) -> OpticsSale:
    sale = _lock_sale(db, sale_id)
    try:
        new_status = SaleStatus(status)
    except ValueError:
        raise InvalidOperationError(f"Invalid sale status: {status!r}")

    if new_status == SaleStatus.DELIVERED and money(sale.due_amount) > 0:
        logger.warning("Sale %s cannot be delivered, due %s", sale.invoice_number, sale.due_amount)
        raise PaymentIncompleteError(money(sale.due_amount))

    sale.status = new_status.value
    db.flush()
    logger.info("Sale %s status -> %s (by %s)", sale.invoice_number, sale.status, user_id)
    return sale


def get_sale(db: Session, sale_id: int) -> OpticsSale:
    sale = (
        db.query(OpticsSale)
        .options(selectinload(OpticsSale.items), selectinload(OpticsSale.payments))
        .filter(OpticsSale.id == int(sale_id))
        .first()
    )
    if not sale:
        raise RecordNotFoundError("Sale", sale_id)
    return sale


def list_sales(
    db: Session,
    *,
    status: Optional[str] = None,
    seller_id: Optional[int] = None,
    with_due: bool = False,
    limit: int = 100,
) -> List[OpticsSale]:
    q = db.query(OpticsSale).options(selectinload(OpticsSale.items), selectinload(OpticsSale.payments))
    if status:
        q = q.filter(OpticsSale.status == status)
    if seller_id:
        q = q.filter(OpticsSale.seller_id == int(seller_id))
    if with_due:
        q = q.filter(OpticsSale.due_amount > 0)
    return q.order_by(OpticsSale.id.desc()).limit(max(1, min(int(limit), 500))).all()
