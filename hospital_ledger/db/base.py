# hospital_ledger/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All ledger tables (catalogue, movements, vendors, sales, accounts) inherit from this."""
    pass
