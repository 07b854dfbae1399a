# FILE: hospital_ledger/api/routes_optics_vendors.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_ledger.api._common import safe_err
from hospital_ledger.api.deps import get_db, current_user_id
from hospital_ledger.db.session import atomic
from hospital_ledger.schemas.optics_vendor import (
    VendorCreate,
    VendorUpdate,
    VendorPaymentIn,
    VendorOut,
    VendorTransactionOut,
    VendorStatementOut,
)
from hospital_ledger.services import vendors as vendor_service
from hospital_ledger.utils.resp import created, ok

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/optics/vendors", tags=["optics-vendors"])


@router.get("")
def list_vendors(active_only: bool = Query(False), db: Session = Depends(get_db)):
    try:
        rows = vendor_service.list_vendors(db, active_only=active_only)
        return ok([VendorOut.model_validate(x).model_dump() for x in rows])
    except Exception as e:
        return safe_err(e)


@router.get("/{vendor_id}")
def get_vendor(vendor_id: int, db: Session = Depends(get_db)):
    try:
        return ok(VendorOut.model_validate(vendor_service.get_vendor(db, vendor_id)).model_dump())
    except Exception as e:
        return safe_err(e)


@router.post("")
def create_vendor(payload: VendorCreate, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            v = vendor_service.create_vendor(db, user_id=user_id, **payload.model_dump())
            out = VendorOut.model_validate(v).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.put("/{vendor_id}")
def update_vendor(vendor_id: int, payload: VendorUpdate, db: Session = Depends(get_db)):
    try:
        with atomic(db):
            v = vendor_service.update_vendor(db, vendor_id, **payload.model_dump(exclude_unset=True))
            out = VendorOut.model_validate(v).model_dump()
        return ok(out)
    except Exception as e:
        return safe_err(e)


@router.post("/{vendor_id}/payments")
def make_payment(
    vendor_id: int,
    payload: VendorPaymentIn,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            txn = vendor_service.make_vendor_payment(
                db,
                vendor_id=vendor_id,
                amount=payload.amount,
                payment_method_id=payload.payment_method_id,
                description=payload.description or "",
                payment_date=payload.payment_date,
                user_id=user_id,
            )
            out = VendorTransactionOut.model_validate(txn).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.get("/{vendor_id}/statement")
def statement(vendor_id: int, db: Session = Depends(get_db)):
    try:
        st = vendor_service.vendor_statement(db, vendor_id)
        return ok(VendorStatementOut(
            vendor=VendorOut.model_validate(st["vendor"]),
            current_balance=st["current_balance"],
            balance_type=st["balance_type"],
            transactions=[VendorTransactionOut.model_validate(t) for t in st["transactions"]],
        ).model_dump())
    except Exception as e:
        return safe_err(e)
