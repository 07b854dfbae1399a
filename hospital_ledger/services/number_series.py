# FILE: hospital_ledger/services/number_series.py
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from hospital_ledger.models.registry import NumberSeries
from hospital_ledger.utils.timezone import today_local


def _date_key(d: date) -> int:
    return int(d.strftime("%Y%m%d"))


def _lock_row(db: Session, key: str, dk: int) -> Optional[NumberSeries]:
    return (
        db.query(NumberSeries)
        .filter(NumberSeries.key == key, NumberSeries.date_key == dk)
        .with_for_update()
        .first()
    )


def next_document_number(
    db: Session,
    prefix: str,                     # OPT, GP, OI, HE ...
    doc_date: Optional[date] = None,
    pad: int = 4,                    # 0001, 0002...
) -> str:
    """
    Concurrency-safe per-day number, UNIQUE(key, date_key) + row lock.

    Example: OPT-20250314-0001
    """
    d = doc_date or today_local()
    dk = _date_key(d)

    row = _lock_row(db, prefix, dk)
    if not row:
        # two writers racing to open the day: the loser re-reads the winner's row
        try:
            with db.begin_nested():
                row = NumberSeries(key=prefix, date_key=dk, next_seq=1)
                db.add(row)
                db.flush()
        except IntegrityError:
            row = _lock_row(db, prefix, dk)
            if not row:
                raise

    seq = int(row.next_seq or 1)
    row.next_seq = seq + 1
    db.flush()

    return f"{prefix}-{d.strftime('%Y%m%d')}-{seq:0{pad}d}"
