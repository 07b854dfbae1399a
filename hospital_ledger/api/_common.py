# FILE: hospital_ledger/api/_common.py
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from hospital_ledger.services.errors import LedgerError
from hospital_ledger.services.items import ItemHandle
from hospital_ledger.schemas.optics_stock import ItemOut
from hospital_ledger.utils.resp import err, ledger_err

logger = logging.getLogger(__name__)


def safe_err(e: Exception):
    """Typed ledger failures keep their status; SQL errors become readable."""
    if isinstance(e, LedgerError):
        return ledger_err(e)
    if isinstance(e, IntegrityError):
        return err("Database constraint error (duplicate/invalid reference).", 400)
    if isinstance(e, ValueError):
        return err(str(e), 400)
    logger.exception("Request failed")
    return err("Internal server error", 500)


def item_out(h: ItemHandle) -> dict:
    return ItemOut(
        item_type=h.ref.kind.value,
        id=h.ref.id,
        name=h.name,
        stock_quantity=h.stock,
        minimum_stock_level=int(h.row.minimum_stock_level or 0),
        cost_price=h.cost_price,
        selling_price=h.selling_price,
        is_active=h.is_active,
    ).model_dump()
