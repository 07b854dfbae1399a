# FILE: hospital_ledger/services/vendors.py
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from hospital_ledger.core.config import settings
from hospital_ledger.models.vendor import OpticsVendor, VendorTransaction, BalanceType
from hospital_ledger.services import hospital_account, registries, vendor_balance
from hospital_ledger.services.errors import (
    InvalidOperationError,
    OverpaymentError,
    RecordNotFoundError,
)
from hospital_ledger.services.money import money

logger = logging.getLogger(__name__)

_CONTACT_FIELDS = (
    "name",
    "company_name",
    "contact_person",
    "phone",
    "email",
    "address",
    "trade_license",
    "credit_limit",
    "payment_terms_days",
    "is_active",
    "notes",
)


def create_vendor(
    db: Session,
    *,
    name: str,
    opening_balance=0,
    balance_type: str = BalanceType.DUE.value,
    user_id: Optional[int] = None,
    **fields,
) -> OpticsVendor:
    name = (name or "").strip()
    if not name:
        raise InvalidOperationError("Vendor name is required")

    v = OpticsVendor(
        name=name,
        opening_balance=money(opening_balance),
        current_balance=money(0),
        balance_type=BalanceType.DUE.value,
    )
    for k, val in fields.items():
        if k in _CONTACT_FIELDS and val is not None:
            setattr(v, k, val)
    db.add(v)
    db.flush()

    vendor_balance.post_opening_balance(db, v, amount=opening_balance, balance_type=balance_type, user_id=user_id)
    logger.info("Created vendor #%s %r opening=%s %s", v.id, v.name, v.current_balance, v.balance_type)
    return v


def update_vendor(db: Session, vendor_id: int, **fields) -> OpticsVendor:
    """Contact/terms only; the balance moves through postings."""
    v = db.get(OpticsVendor, int(vendor_id))
    if not v:
        raise RecordNotFoundError("Vendor", vendor_id)
    for k, val in fields.items():
        if k in _CONTACT_FIELDS and val is not None:
            setattr(v, k, val)
    db.flush()
    return v


def get_vendor(db: Session, vendor_id: int) -> OpticsVendor:
    v = db.get(OpticsVendor, int(vendor_id))
    if not v:
        raise RecordNotFoundError("Vendor", vendor_id)
    return v


def list_vendors(db: Session, *, active_only: bool = False) -> List[OpticsVendor]:
    q = db.query(OpticsVendor)
    if active_only:
        q = q.filter(OpticsVendor.is_active.is_(True))
    return q.order_by(OpticsVendor.name.asc()).all()


def make_vendor_payment(
    db: Session,
    *,
    vendor_id: int,
    amount,
    payment_method_id: Optional[int] = None,
    description: str = "",
    payment_date: Optional[date] = None,
    user_id: Optional[int] = None,
) -> VendorTransaction:
    """
    General vendor payment (not tied to one purchase).
    Rejected when it exceeds what is due; the paid cash is expensed upward.
    """
    amt = money(amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")

    vendor = vendor_balance.lock_vendor(db, vendor_id)
    if vendor.balance_type == BalanceType.DUE.value:
        due = vendor_balance.due_of(vendor)
        if amt > due:
            logger.warning("Vendor #%s payment %s rejected, due is %s", vendor.id, amt, due)
            raise OverpaymentError(amt, due, "vendor due")

    method_name = registries.payment_method_name(db, payment_method_id)

    txn = vendor_balance.add_payment(
        db,
        vendor_id=vendor.id,
        amount=amt,
        description=description or f"Payment to {vendor.name}",
        payment_method_id=payment_method_id,
        transaction_date=payment_date,
        reference_type="optics_vendor",
        reference_id=vendor.id,
        user_id=user_id,
    )

    desc = f"Payment to vendor: {vendor.name}"
    if method_name:
        desc += f" via {method_name}"
    if description:
        desc += f" - {description}"

    hospital_account.post_expense(
        db,
        amount=amt,
        category=settings.OPTICS_VENDOR_PAYMENT_CATEGORY,
        description=desc,
        transaction_date=payment_date,
        source_type="optics_vendor",
        source_id=vendor.id,
        user_id=user_id,
    )
    return txn


def vendor_statement(db: Session, vendor_id: int) -> Dict[str, Any]:
    v = get_vendor(db, vendor_id)
    rows = (
        db.query(VendorTransaction)
        .filter(VendorTransaction.vendor_id == v.id)
        .order_by(VendorTransaction.id.asc())
        .all()
    )
    return {
        "vendor": v,
        "current_balance": money(v.current_balance),
        "balance_type": v.balance_type,
        "transactions": rows,
    }
