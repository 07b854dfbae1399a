# FILE: hospital_ledger/api/routes_optics_purchases.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_ledger.api._common import safe_err
from hospital_ledger.api.deps import get_db, current_user_id
from hospital_ledger.db.session import atomic
from hospital_ledger.schemas.optics_purchase import (
    PurchaseCreate,
    PurchaseUpdate,
    PurchasePayDue,
    PurchaseOut,
)
from hospital_ledger.services import purchases as purchase_service
from hospital_ledger.utils.resp import created, ok

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/optics/purchases", tags=["optics-purchases"])


def _out(db: Session, purchase_id: int) -> dict:
    return PurchaseOut.model_validate(purchase_service.get_purchase(db, purchase_id)).model_dump()


@router.get("")
def list_purchases(
    vendor_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    try:
        rows = purchase_service.list_purchases(db, vendor_id=vendor_id, status=status, limit=limit)
        return ok([PurchaseOut.model_validate(x).model_dump() for x in rows])
    except Exception as e:
        return safe_err(e)


@router.get("/{purchase_id}")
def get_purchase(purchase_id: int, db: Session = Depends(get_db)):
    try:
        return ok(_out(db, purchase_id))
    except Exception as e:
        return safe_err(e)


@router.post("")
def create_purchase(
    payload: PurchaseCreate,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            p = purchase_service.create_purchase(db, payload, user_id)
        return created(_out(db, p.id))
    except Exception as e:
        return safe_err(e)


@router.put("/{purchase_id}")
def update_purchase(
    purchase_id: int,
    payload: PurchaseUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            purchase_service.update_purchase(db, purchase_id, payload, user_id)
        return ok(_out(db, purchase_id))
    except Exception as e:
        return safe_err(e)


@router.delete("/{purchase_id}")
def delete_purchase(
    purchase_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            summary = purchase_service.delete_purchase(db, purchase_id, user_id)
        return ok(summary)
    except Exception as e:
        return safe_err(e)


@router.post("/{purchase_id}/pay-due")
def pay_due(
    purchase_id: int,
    payload: PurchasePayDue,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            purchase_service.pay_due(db, purchase_id, payload, user_id)
        return ok(_out(db, purchase_id))
    except Exception as e:
        return safe_err(e)
