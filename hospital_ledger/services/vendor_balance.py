# FILE: hospital_ledger/services/vendor_balance.py
"""
Vendor due/advance balance.

current_balance is never negative; the direction lives in balance_type.
Internally a posting works on the signed net (due = +, advance = -):

    purchase due  -> net += amount
    payment       -> net -= amount

Crossing zero flips balance_type; landing exactly on zero keeps it.
Every mutation appends a VendorTransaction with before/after snapshots.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from hospital_ledger.models.vendor import (
    OpticsVendor,
    VendorTransaction,
    BalanceType,
    VendorTxnType,
)
from hospital_ledger.services.errors import InvalidOperationError, RecordNotFoundError
from hospital_ledger.services.money import money
from hospital_ledger.services.number_series import next_document_number
from hospital_ledger.utils.timezone import today_local

logger = logging.getLogger(__name__)

_TXN_PREFIX = {
    VendorTxnType.OPENING: "OVOPEN",
    VendorTxnType.PURCHASE: "OVPURCH",
    VendorTxnType.PAYMENT: "OVPAY",
    VendorTxnType.ADJUSTMENT: "OVADJ",
}


def signed_net(balance, balance_type: str) -> Decimal:
    amt = money(balance)
    return amt if balance_type == BalanceType.DUE.value else -amt


def split_net(net: Decimal, previous_type: str) -> Tuple[Decimal, str]:
    """Signed net -> (non-negative balance, balance_type)."""
    net = money(net)
    if net > 0:
        return net, BalanceType.DUE.value
    if net < 0:
        return -net, BalanceType.ADVANCE.value
    return money(0), previous_type or BalanceType.DUE.value


def lock_vendor(db: Session, vendor_id: int) -> OpticsVendor:
    v = (
        db.query(OpticsVendor)
        .filter(OpticsVendor.id == int(vendor_id))
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not v:
        raise RecordNotFoundError("Vendor", vendor_id)
    return v


def due_of(vendor: OpticsVendor) -> Decimal:
    """What the shop currently owes this vendor (0 when in advance)."""
    if vendor.balance_type == BalanceType.DUE.value:
        return money(vendor.current_balance)
    return money(0)


def _post(
    db: Session,
    vendor: OpticsVendor,
    *,
    txn_type: VendorTxnType,
    net_delta: Decimal,
    description: str = "",
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    payment_method_id: Optional[int] = None,
    transaction_date: Optional[date] = None,
    user_id: Optional[int] = None,
) -> VendorTransaction:
    prev_balance = money(vendor.current_balance)
    prev_type = vendor.balance_type or BalanceType.DUE.value

    new_balance, new_type = split_net(signed_net(prev_balance, prev_type) + net_delta, prev_type)
    d = transaction_date or today_local()

    txn = VendorTransaction(
        transaction_no=next_document_number(db, _TXN_PREFIX[txn_type], d),
        vendor_id=vendor.id,
        type=txn_type.value,
        amount=money(abs(net_delta)),
        previous_balance=prev_balance,
        previous_balance_type=prev_type,
        new_balance=new_balance,
        new_balance_type=new_type,
        reference_type=reference_type,
        reference_id=reference_id,
        payment_method_id=payment_method_id,
        description=description or "",
        transaction_date=d,
        created_by=user_id,
    )
    vendor.current_balance = new_balance
    vendor.balance_type = new_type
    db.add(txn)
    db.flush()

    logger.info(
        "Vendor #%s %s %s: %s %s -> %s %s",
        vendor.id, txn_type.value, txn.amount, prev_balance, prev_type, new_balance, new_type,
    )
    return txn


def _positive(amount) -> Decimal:
    amt = money(amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")
    return amt


def add_purchase_due(
    db: Session,
    *,
    vendor_id: int,
    amount,
    description: str = "",
    reference_id: Optional[int] = None,
    transaction_date: Optional[date] = None,
    user_id: Optional[int] = None,
) -> VendorTransaction:
    """Due grows; an advance is consumed first and flips to due if exceeded."""
    amt = _positive(amount)
    vendor = lock_vendor(db, vendor_id)
    return _post(
        db,
        vendor,
        txn_type=VendorTxnType.PURCHASE,
        net_delta=amt,
        description=description,
        reference_type="optics_purchase" if reference_id else None,
        reference_id=reference_id,
        transaction_date=transaction_date,
        user_id=user_id,
    )


def add_payment(
    db: Session,
    *,
    vendor_id: int,
    amount,
    description: str = "",
    payment_method_id: Optional[int] = None,
    transaction_date: Optional[date] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> VendorTransaction:
    """
    Due shrinks; paying past it flips the remainder into an advance.

    Does not reject overpayment: callers that must not create an advance
    check due_of() first.
    """
    amt = _positive(amount)
    vendor = lock_vendor(db, vendor_id)
    return _post(
        db,
        vendor,
        txn_type=VendorTxnType.PAYMENT,
        net_delta=-amt,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        payment_method_id=payment_method_id,
        transaction_date=transaction_date,
        user_id=user_id,
    )


def adjust_balance(
    db: Session,
    *,
    vendor_id: int,
    net_delta,
    description: str = "",
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> Optional[VendorTransaction]:
    """Signed correction (+ more due, - less due). Zero writes nothing."""
    delta = money(net_delta)
    if delta == 0:
        return None
    vendor = lock_vendor(db, vendor_id)
    return _post(
        db,
        vendor,
        txn_type=VendorTxnType.ADJUSTMENT,
        net_delta=delta,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        user_id=user_id,
    )


def post_opening_balance(
    db: Session,
    vendor: OpticsVendor,
    *,
    amount,
    balance_type: str,
    user_id: Optional[int] = None,
) -> Optional[VendorTransaction]:
    amt = money(amount)
    if amt < 0:
        raise InvalidOperationError("Opening balance cannot be negative")
    if amt == 0:
        return None
    if balance_type not in (BalanceType.DUE.value, BalanceType.ADVANCE.value):
        raise InvalidOperationError(f"Invalid balance type: {balance_type!r}")

    return _post(
        db,
        vendor,
        txn_type=VendorTxnType.OPENING,
        net_delta=signed_net(amt, balance_type),
        description="Opening balance",
        user_id=user_id,
    )
