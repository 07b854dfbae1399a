# FILE: hospital_ledger/services/shop_account.py
"""
Optics shop ledger.

The balance is derived, never stored:
    Σfund_in - Σfund_out + Σincome - Σexpense
so a missed update can never make it drift from its entries.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from hospital_ledger.models.accounts import (
    OpticsTransaction,
    OpticsFundTransaction,
    EntryType,
    FundType,
)
from hospital_ledger.services.errors import InvalidOperationError
from hospital_ledger.services.money import D, money
from hospital_ledger.services.number_series import next_document_number
from hospital_ledger.utils.timezone import today_local

logger = logging.getLogger(__name__)


def _positive(amount) -> Decimal:
    amt = money(amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")
    return amt


def _post(
    db: Session,
    *,
    entry_type: EntryType,
    amount,
    category: str,
    description: str = "",
    transaction_date: Optional[date] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> OpticsTransaction:
    amt = _positive(amount)
    d = transaction_date or today_local()
    prefix = "OI" if entry_type == EntryType.INCOME else "OE"

    txn = OpticsTransaction(
        transaction_no=next_document_number(db, prefix, d),
        type=entry_type.value,
        amount=amt,
        category=(category or "").strip(),
        description=description or "",
        reference_type=reference_type,
        reference_id=reference_id,
        transaction_date=d,
        created_by=user_id,
    )
    db.add(txn)
    db.flush()

    logger.info("Shop %s %s %s [%s]", entry_type.value, txn.transaction_no, amt, txn.category)
    return txn


def post_income(db: Session, **kwargs) -> OpticsTransaction:
    return _post(db, entry_type=EntryType.INCOME, **kwargs)


def post_expense(db: Session, **kwargs) -> OpticsTransaction:
    return _post(db, entry_type=EntryType.EXPENSE, **kwargs)


def adjust_amount(
    db: Session,
    *,
    amount,
    category: str,
    description: str = "",
    direction: Optional[EntryType] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> Optional[OpticsTransaction]:
    """
    Single correcting entry with no business document behind it.

    Without an explicit direction the sign decides: positive -> income,
    negative -> expense. A zero adjustment writes nothing and returns None.
    """
    amt = money(amount)
    if amt == 0:
        return None

    if direction is None:
        direction = EntryType.INCOME if amt > 0 else EntryType.EXPENSE
    elif amt < 0:
        raise InvalidOperationError("Directed adjustment amount must be > 0")

    return _post(
        db,
        entry_type=direction,
        amount=abs(amt),
        category=category,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        user_id=user_id,
    )


def _fund(
    db: Session,
    *,
    fund_type: FundType,
    amount,
    purpose: str,
    description: str = "",
    fund_date: Optional[date] = None,
    user_id: Optional[int] = None,
) -> OpticsFundTransaction:
    amt = _positive(amount)
    purpose = (purpose or "").strip()
    if not purpose:
        raise InvalidOperationError("Purpose is required")

    d = fund_date or today_local()
    prefix = "OFI" if fund_type == FundType.FUND_IN else "OFO"

    row = OpticsFundTransaction(
        voucher_no=next_document_number(db, prefix, d),
        type=fund_type.value,
        amount=amt,
        purpose=purpose,
        description=description or "",
        date=d,
        added_by=user_id,
    )
    db.add(row)
    db.flush()

    logger.info("Shop %s %s %s (%s)", fund_type.value, row.voucher_no, amt, purpose)
    return row


def fund_in(db: Session, **kwargs) -> OpticsFundTransaction:
    return _fund(db, fund_type=FundType.FUND_IN, **kwargs)


def fund_out(db: Session, **kwargs) -> OpticsFundTransaction:
    return _fund(db, fund_type=FundType.FUND_OUT, **kwargs)


def _sum_txn(db: Session, entry_type: EntryType, start: Optional[date] = None, end: Optional[date] = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(OpticsTransaction.amount), 0)).filter(
        OpticsTransaction.type == entry_type.value
    )
    if start is not None:
        q = q.filter(OpticsTransaction.transaction_date >= start)
    if end is not None:
        q = q.filter(OpticsTransaction.transaction_date <= end)
    return money(D(q.scalar()))


def _sum_fund(db: Session, fund_type: FundType, end: Optional[date] = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(OpticsFundTransaction.amount), 0)).filter(
        OpticsFundTransaction.type == fund_type.value
    )
    if end is not None:
        q = q.filter(OpticsFundTransaction.date <= end)
    return money(D(q.scalar()))


def balance(db: Session, as_of: Optional[date] = None) -> Decimal:
    return money(
        _sum_fund(db, FundType.FUND_IN, as_of)
        - _sum_fund(db, FundType.FUND_OUT, as_of)
        + _sum_txn(db, EntryType.INCOME, end=as_of)
        - _sum_txn(db, EntryType.EXPENSE, end=as_of)
    )


def month_bounds(year: int, month: int):
    if not (1 <= int(month) <= 12):
        raise InvalidOperationError("Month must be 1..12")
    start = date(int(year), int(month), 1)
    nxt = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)
    return start, date.fromordinal(nxt.toordinal() - 1)


def monthly_report(db: Session, year: int, month: int) -> Dict[str, Any]:
    start, end = month_bounds(year, month)
    income = _sum_txn(db, EntryType.INCOME, start, end)
    expense = _sum_txn(db, EntryType.EXPENSE, start, end)
    return {
        "year": int(year),
        "month": int(month),
        "income": income,
        "expense": expense,
        "profit": money(income - expense),
        "balance": balance(db),
    }


def entries_for(db: Session, reference_type: str, reference_id: int):
    return (
        db.query(OpticsTransaction)
        .filter(
            OpticsTransaction.reference_type == reference_type,
            OpticsTransaction.reference_id == reference_id,
        )
        .order_by(OpticsTransaction.id.asc())
        .all()
    )


__all__ = [
    "post_income",
    "post_expense",
    "adjust_amount",
    "fund_in",
    "fund_out",
    "balance",
    "monthly_report",
    "entries_for",
]
