# FILE: hospital_ledger/api/routes_optics_sales.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_ledger.api._common import safe_err
from hospital_ledger.api.deps import get_db, current_user_id
from hospital_ledger.db.session import atomic
from hospital_ledger.schemas.optics_sale import (
    SaleCreate,
    SaleUpdate,
    SalePaymentIn,
    SaleStatusIn,
    SaleOut,
    SalePaymentOut,
)
from hospital_ledger.services import sales as sale_service
from hospital_ledger.utils.resp import created, ok

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/optics/sales", tags=["optics-sales"])


def _sale_out(db: Session, sale_id: int) -> dict:
    return SaleOut.model_validate(sale_service.get_sale(db, sale_id)).model_dump()


@router.get("")
def list_sales(
    status: Optional[str] = Query(None),
    seller_id: Optional[int] = Query(None),
    with_due: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    try:
        rows = sale_service.list_sales(db, status=status, seller_id=seller_id, with_due=with_due, limit=limit)
        return ok([SaleOut.model_validate(x).model_dump() for x in rows])
    except Exception as e:
        return safe_err(e)


@router.get("/{sale_id}")
def get_sale(sale_id: int, db: Session = Depends(get_db)):
    try:
        return ok(_sale_out(db, sale_id))
    except Exception as e:
        return safe_err(e)


@router.post("")
def create_sale(payload: SaleCreate, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            sale = sale_service.create_sale(db, payload, user_id)
        return created(_sale_out(db, sale.id))
    except Exception as e:
        return safe_err(e)


@router.put("/{sale_id}")
def update_sale(
    sale_id: int,
    payload: SaleUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            sale_service.update_sale(db, sale_id, payload, user_id)
        return ok(_sale_out(db, sale_id))
    except Exception as e:
        return safe_err(e)


@router.delete("/{sale_id}")
def delete_sale(sale_id: int, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            summary = sale_service.delete_sale(db, sale_id, user_id)
        return ok(summary)
    except Exception as e:
        return safe_err(e)


@router.post("/{sale_id}/payments")
def add_payment(
    sale_id: int,
    payload: SalePaymentIn,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            pay = sale_service.add_payment(db, sale_id, payload, user_id)
            out = SalePaymentOut.model_validate(pay).model_dump()
        return created({"payment": out, "sale": _sale_out(db, sale_id)})
    except Exception as e:
        return safe_err(e)


@router.patch("/{sale_id}/status")
def update_status(
    sale_id: int,
    payload: SaleStatusIn,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            sale_service.update_status(db, sale_id, payload.status, user_id)
        return ok(_sale_out(db, sale_id))
    except Exception as e:
        return safe_err(e)
