# FILE: hospital_ledger/models/patient.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from hospital_ledger.db.base import Base


class Patient(Base):
    """Read-only view of the patient directory used to resolve sale customers."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    patient_code = Column(String(32), index=True, nullable=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), index=True, nullable=True)
    email = Column(String(191), index=True, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
