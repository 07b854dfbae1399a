# FILE: hospital_ledger/api/routes_optics_stock.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_ledger.api._common import safe_err
from hospital_ledger.api.deps import get_db, current_user_id
from hospital_ledger.db.session import atomic
from hospital_ledger.schemas.optics_stock import (
    StockInIn,
    StockAdjustIn,
    MovementEditIn,
    MovementOut,
    StockDriftOut,
)
from hospital_ledger.services import stock_ledger, stock_management
from hospital_ledger.services.items import ItemRef, resolve
from hospital_ledger.utils.resp import created, ok

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/optics/stock", tags=["optics-stock"])


@router.get("/movements")
def list_movements(
    item_type: str = Query(...),
    item_id: int = Query(...),
    db: Session = Depends(get_db),
):
    try:
        rows = stock_ledger.movements_for(db, ItemRef.of(item_type, item_id))
        return ok([MovementOut.model_validate(x).model_dump() for x in rows])
    except Exception as e:
        return safe_err(e)


@router.get("/verify/{item_type}/{item_id}")
def verify(item_type: str, item_id: int, db: Session = Depends(get_db)):
    try:
        ref = ItemRef.of(item_type, item_id)
        h = resolve(db, ref)
        replayed = stock_ledger.stock_from_movements(db, ref)
        return ok({"item_type": ref.kind.value, "item_id": ref.id, "cached": h.stock,
                   "replayed": replayed, "consistent": h.stock == replayed})
    except Exception as e:
        return safe_err(e)


@router.get("/drift")
def drift(db: Session = Depends(get_db)):
    try:
        return ok([StockDriftOut(**r).model_dump() for r in stock_ledger.stock_drift_report(db)])
    except Exception as e:
        return safe_err(e)


@router.post("/in")
def stock_in(payload: StockInIn, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            mv = stock_management.stock_in(
                db,
                ref=ItemRef.of(payload.item_type, payload.item_id),
                quantity=payload.quantity,
                unit_price=payload.unit_price,
                vendor_id=payload.vendor_id,
                paid_amount=payload.paid_amount,
                notes=payload.notes or "",
                user_id=user_id,
            )
            out = MovementOut.model_validate(mv).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.post("/adjust")
def adjust(payload: StockAdjustIn, db: Session = Depends(get_db), user_id: Optional[int] = Depends(current_user_id)):
    try:
        with atomic(db):
            mv = stock_ledger.adjust_stock(
                db,
                ref=ItemRef.of(payload.item_type, payload.item_id),
                quantity=payload.quantity,
                notes=payload.notes or "",
                user_id=user_id,
            )
            out = MovementOut.model_validate(mv).model_dump()
        return created(out)
    except Exception as e:
        return safe_err(e)


@router.put("/movements/{movement_id}")
def quick_edit(
    movement_id: int,
    payload: MovementEditIn,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            mv = stock_management.quick_edit_movement(
                db,
                movement_id,
                ref=ItemRef.of(payload.item_type, payload.item_id),
                quantity=payload.quantity,
                unit_price=payload.unit_price,
                notes=payload.notes,
                user_id=user_id,
            )
            out = MovementOut.model_validate(mv).model_dump()
        return ok(out)
    except Exception as e:
        return safe_err(e)


@router.delete("/movements/{movement_id}")
def quick_delete(
    movement_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(current_user_id),
):
    try:
        with atomic(db):
            refund = stock_management.quick_delete_movement(db, movement_id, user_id=user_id)
        return ok({"deleted": True, "refund": refund})
    except Exception as e:
        return safe_err(e)
