# FILE: hospital_ledger/api/routes_accounts.py
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_ledger.api._common import safe_err
from hospital_ledger.api.deps import get_db, current_user_id
from hospital_ledger.db.session import atomic
from hospital_ledger.schemas.accounts import (
    FundIn,
    LedgerEntryIn,
    OpticsTransactionOut,
    FundTransactionOut,
    HospitalTransactionOut,
    BalanceOut,
    MonthlyReportOut,
)
from hospital_ledger.services import hospital_account, shop_account
from hospital_ledger.utils.resp import created, ok

logger = logging.getLogger(__name__)
router = APIRouter(tags=["accounts"])


# =========================
# OPTICS (SHOP) ACCOUNT
# =========================
@router.get("/optics/account/balance")
def shop_balance(as_of: Optional[date] = Query(None), db: Session = Depends(get_db)):
    try:
        return ok(BalanceOut(balance=shop_account.balance(db, as_of), as_of=as_of).model_dump())
    except Exception as e:
        return safe_err(e)


@router.get("/optics/account/monthly")
def shop_monthly(year: int = Query(...), month: int = Query(..., ge=1, le=12), db: Session = Depends(get_db)):
    try:
        return ok(MonthlyReportOut(**shop_account.monthly_report(db, year, month)).model_dump())
    except Exception as e:
        return safe_err(e)


@router.post("/optics/account/fund-in")
def fund_in(payload: FundIn, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            row = shop_account.fund_in(
                db, amount=payload.amount, purpose=payload.purpose,
                description=payload.description or "", fund_date=payload.date, user_id=user_id,
            )
            out = FundTransactionOut.model_validate(row).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.post("/optics/account/fund-out")
def fund_out(payload: FundIn, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            row = shop_account.fund_out(
                db, amount=payload.amount, purpose=payload.purpose,
                description=payload.description or "", fund_date=payload.date, user_id=user_id,
            )
            out = FundTransactionOut.model_validate(row).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.post("/optics/account/income")
def shop_income(payload: LedgerEntryIn, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            txn = shop_account.post_income(
                db, amount=payload.amount, category=payload.category,
                description=payload.description or "", transaction_date=payload.transaction_date, user_id=user_id,
            )
            out = OpticsTransactionOut.model_validate(txn).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.post("/optics/account/expense")
def shop_expense(payload: LedgerEntryIn, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            txn = shop_account.post_expense(
                db, amount=payload.amount, category=payload.category,
                description=payload.description or "", transaction_date=payload.transaction_date, user_id=user_id,
            )
            out = OpticsTransactionOut.model_validate(txn).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


# =========================
# HOSPITAL (CONSOLIDATED) ACCOUNT
# =========================
@router.get("/hospital/account/balance")
def hospital_balance(as_of: Optional[date] = Query(None), db: Session = Depends(get_db)):
    try:
        return ok(BalanceOut(balance=hospital_account.balance(db, as_of), as_of=as_of).model_dump())
    except Exception as e:
        return safe_err(e)


@router.get("/hospital/account/monthly")
def hospital_monthly(year: int = Query(...), month: int = Query(..., ge=1, le=12), db: Session = Depends(get_db)):
    try:
        return ok(MonthlyReportOut(**hospital_account.monthly_report(db, year, month)).model_dump())
    except Exception as e:
        return safe_err(e)


@router.get("/hospital/account/sources/{source_type}/{source_id}")
def hospital_source(source_type: str, source_id: int, db: Session = Depends(get_db)):
    try:
        rows = hospital_account.entries_for(db, source_type, source_id)
        return ok({
            "recognized": hospital_account.recognized_for_source(db, source_type, source_id),
            "entries": [HospitalTransactionOut.model_validate(x).model_dump() for x in rows],
        })
    except Exception as e:
        return safe_err(e)
