# hospital_ledger/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_ledger.core.config import settings
from hospital_ledger.db.base import Base

# Import all models so metadata is complete
from hospital_ledger import models  # noqa: F401
from hospital_ledger.models.registry import (
    PaymentMethod,
    HospitalIncomeCategory,
    HospitalExpenseCategory,
)

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ["Cash", "Card", "bKash", "Nagad", "Rocket", "Bank Transfer", "Cheque"]


def _income_categories():
    return [
        settings.OPTICS_INCOME_CATEGORY,
        settings.OPTICS_PURCHASE_REFUND_CATEGORY,
    ]


def _expense_categories():
    return [
        settings.OPTICS_PURCHASE_CATEGORY,
        settings.OPTICS_VENDOR_PAYMENT_CATEGORY,
        settings.OPTICS_SALE_REVERSAL_CATEGORY,
    ]


def seed_registries(db: Session) -> None:
    """
    Seed ONLY missing rows; safe to run multiple times.
    """
    for name in PAYMENT_METHODS:
        if not db.query(PaymentMethod).filter(PaymentMethod.name == name).first():
            db.add(PaymentMethod(name=name, is_active=True))

    for name in _income_categories():
        if not db.query(HospitalIncomeCategory).filter(HospitalIncomeCategory.name == name).first():
            db.add(HospitalIncomeCategory(name=name, is_active=True))

    for name in _expense_categories():
        if not db.query(HospitalExpenseCategory).filter(HospitalExpenseCategory.name == name).first():
            db.add(HospitalExpenseCategory(name=name, is_active=True))


def init_db(engine: Engine, *, fresh: bool = False) -> None:
    if fresh:
        logger.warning("Dropping ALL tables (dev only) ...")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)

    try:
        with Session(engine) as db:
            seed_registries(db)
            db.commit()
    except SQLAlchemyError:
        logger.exception("Seeding registries failed")
        raise


def run(fresh: bool = False) -> None:
    from hospital_ledger.db.session import engine

    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("Creating all missing tables on %s ...", engine.url.render_as_string(hide_password=True))
    init_db(engine, fresh=fresh)
    logger.info("Payment methods and ledger categories seeded (missing rows inserted).")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed payment methods and categories).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    args = parser.parse_args()
    run(fresh=args.fresh)
