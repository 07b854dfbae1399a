# hospital_ledger/api/deps.py
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header
from sqlalchemy.orm import Session

from hospital_ledger.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def current_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> Optional[int]:
    """Acting user as forwarded by the gateway; authentication happens upstream."""
    return x_user_id
