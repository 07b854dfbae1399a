# FILE: hospital_ledger/api/routes_optics_items.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_ledger.api._common import item_out, safe_err
from hospital_ledger.api.deps import get_db, current_user_id
from hospital_ledger.db.session import atomic
from hospital_ledger.schemas.optics_stock import ItemCreate, ItemUpdate, ItemActiveIn
from hospital_ledger.services import catalogue
from hospital_ledger.services.items import ItemRef, resolve
from hospital_ledger.utils.resp import created, ok

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/optics/items", tags=["optics-items"])


@router.get("/low-stock")
def low_stock(db: Session = Depends(get_db)):
    try:
        return ok([item_out(h) for h in catalogue.low_stock_items(db)])
    except Exception as e:
        return safe_err(e)


@router.get("/{item_type}")
def list_items(
    item_type: str,
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    try:
        return ok([item_out(h) for h in catalogue.list_items(db, item_type, active_only=active_only)])
    except Exception as e:
        return safe_err(e)


@router.get("/{item_type}/{item_id}")
def get_item(item_type: str, item_id: int, db: Session = Depends(get_db)):
    try:
        return ok(item_out(resolve(db, ItemRef.of(item_type, item_id))))
    except Exception as e:
        return safe_err(e)


@router.post("")
def create_item(payload: ItemCreate, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            h = catalogue.create_item(
                db,
                kind=payload.item_type,
                fields=payload.data,
                opening_stock=payload.opening_stock,
                vendor_id=payload.vendor_id,
                paid_amount=payload.paid_amount,
                user_id=user_id,
            )
            out = item_out(h)
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.put("/{item_type}/{item_id}")
def update_item(item_type: str, item_id: int, payload: ItemUpdate, db: Session = Depends(get_db)):
    try:
        with atomic(db):
            out = item_out(catalogue.update_item(db, ItemRef.of(item_type, item_id), payload.data))
        return ok(out)
    except Exception as e:
        return safe_err(e)


@router.patch("/{item_type}/{item_id}/active")
def set_active(item_type: str, item_id: int, payload: ItemActiveIn, db: Session = Depends(get_db)):
    try:
        with atomic(db):
            out = item_out(catalogue.set_item_active(db, ItemRef.of(item_type, item_id), payload.is_active))
        return ok(out)
    except Exception as e:
        return safe_err(e)


@router.delete("/{item_type}/{item_id}")
def delete_item(
    item_type: str,
    item_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            summary = catalogue.delete_item(db, ItemRef.of(item_type, item_id), user_id=user_id)
        return ok({"deleted": True, **summary})
    except Exception as e:
        return safe_err(e)
