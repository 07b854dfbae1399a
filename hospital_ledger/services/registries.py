# FILE: hospital_ledger/services/registries.py
from __future__ import annotations

import logging
from typing import Optional, Type, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hospital_ledger.models.registry import (
    PaymentMethod,
    HospitalIncomeCategory,
    HospitalExpenseCategory,
)
from hospital_ledger.models.patient import Patient
from hospital_ledger.services.errors import RecordNotFoundError

logger = logging.getLogger(__name__)

CategoryModel = Union[Type[HospitalIncomeCategory], Type[HospitalExpenseCategory]]


def _first_or_create(db: Session, model: CategoryModel, name: str):
    name = (name or "").strip()
    if not name:
        raise ValueError("Category name is required")

    row = db.query(model).filter(func.lower(model.name) == name.lower()).first()
    if row:
        return row

    try:
        with db.begin_nested():
            row = model(name=name, is_active=True)
            db.add(row)
            db.flush()
    except IntegrityError:
        row = db.query(model).filter(func.lower(model.name) == name.lower()).first()
        if not row:
            raise
        return row

    logger.info("Created %s %r (id=%s)", model.__tablename__, name, row.id)
    return row


def income_category(db: Session, name: str) -> HospitalIncomeCategory:
    return _first_or_create(db, HospitalIncomeCategory, name)


def expense_category(db: Session, name: str) -> HospitalExpenseCategory:
    return _first_or_create(db, HospitalExpenseCategory, name)


def payment_method_name(db: Session, method_id: Optional[int]) -> Optional[str]:
    if not method_id:
        return None
    pm = db.get(PaymentMethod, int(method_id))
    if not pm:
        raise RecordNotFoundError("Payment method", method_id)
    return pm.name


def get_patient(db: Session, patient_id: int) -> Patient:
    p = db.get(Patient, int(patient_id))
    if not p:
        raise RecordNotFoundError("Patient", patient_id)
    return p
