# FILE: hospital_ledger/services/hospital_account.py
"""
Consolidated hospital ledger.

Only cash that actually crossed the shop boundary is posted here
(advances, later payments, paid purchase portions). A due is recognised
only when it is paid.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import func, case
from sqlalchemy.orm import Session

from hospital_ledger.models.accounts import HospitalTransaction, EntryType
from hospital_ledger.services import registries
from hospital_ledger.services.errors import InvalidOperationError
from hospital_ledger.services.money import D, money
from hospital_ledger.services.number_series import next_document_number
from hospital_ledger.services.shop_account import month_bounds
from hospital_ledger.utils.timezone import today_local

logger = logging.getLogger(__name__)


def post_income(
    db: Session,
    *,
    amount,
    category: str,
    description: str = "",
    transaction_date: Optional[date] = None,
    source_type: Optional[str] = None,
    source_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> HospitalTransaction:
    amt = money(amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")

    cat = registries.income_category(db, category)
    d = transaction_date or today_local()

    txn = HospitalTransaction(
        transaction_no=next_document_number(db, "HT", d),
        type=EntryType.INCOME.value,
        amount=amt,
        category=cat.name,
        income_category_id=cat.id,
        source_type=source_type,
        source_id=source_id,
        description=description or "",
        transaction_date=d,
        created_by=user_id,
    )
    db.add(txn)
    db.flush()

    logger.info("Hospital income %s %s [%s] source=%s:%s", txn.transaction_no, amt, cat.name, source_type, source_id)
    return txn


def post_expense(
    db: Session,
    *,
    amount,
    category: str,
    description: str = "",
    transaction_date: Optional[date] = None,
    source_type: Optional[str] = None,
    source_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> HospitalTransaction:
    amt = money(amount)
    if amt <= 0:
        raise InvalidOperationError("Amount must be > 0")

    cat = registries.expense_category(db, category)
    d = transaction_date or today_local()

    txn = HospitalTransaction(
        transaction_no=next_document_number(db, "HE", d),
        type=EntryType.EXPENSE.value,
        amount=amt,
        category=cat.name,
        expense_category_id=cat.id,
        source_type=source_type,
        source_id=source_id,
        description=description or "",
        transaction_date=d,
        created_by=user_id,
    )
    db.add(txn)
    db.flush()

    logger.info("Hospital expense %s %s [%s] source=%s:%s", txn.transaction_no, amt, cat.name, source_type, source_id)
    return txn


def _signed_amount():
    return case(
        (HospitalTransaction.type == EntryType.INCOME.value, HospitalTransaction.amount),
        else_=-HospitalTransaction.amount,
    )


def balance(db: Session, as_of: Optional[date] = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(_signed_amount()), 0))
    if as_of is not None:
        q = q.filter(HospitalTransaction.transaction_date <= as_of)
    return money(D(q.scalar()))


def recognized_for_source(db: Session, source_type: str, source_id: int) -> Decimal:
    """Net cash recognised for one document (income minus expense)."""
    total = (
        db.query(func.coalesce(func.sum(_signed_amount()), 0))
        .filter(
            HospitalTransaction.source_type == source_type,
            HospitalTransaction.source_id == source_id,
        )
        .scalar()
    )
    return money(D(total))


def monthly_report(db: Session, year: int, month: int) -> Dict[str, Any]:
    start, end = month_bounds(year, month)

    def _sum(t: EntryType) -> Decimal:
        v = (
            db.query(func.coalesce(func.sum(HospitalTransaction.amount), 0))
            .filter(
                HospitalTransaction.type == t.value,
                HospitalTransaction.transaction_date >= start,
                HospitalTransaction.transaction_date <= end,
            )
            .scalar()
        )
        return money(D(v))

    income = _sum(EntryType.INCOME)
    expense = _sum(EntryType.EXPENSE)
    return {
        "year": int(year),
        "month": int(month),
        "income": income,
        "expense": expense,
        "profit": money(income - expense),
        "balance": balance(db),
    }


def entries_for(db: Session, source_type: str, source_id: int):
    return (
        db.query(HospitalTransaction)
        .filter(
            HospitalTransaction.source_type == source_type,
            HospitalTransaction.source_id == source_id,
        )
        .order_by(HospitalTransaction.id.asc())
        .all()
    )
