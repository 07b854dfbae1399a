# FILE: hospital_ledger/services/errors.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional


class LedgerError(RuntimeError):
    """Base for every rejected ledger operation; the unit of work is rolled back."""
    status_code = 400


class InsufficientStockError(LedgerError):
    status_code = 409

    def __init__(self, item_name: str, available: int, requested: int):
        self.item_name = item_name
        self.available = int(available)
        self.requested = int(requested)
        super().__init__(
            f"Insufficient stock for {item_name}. Available: {self.available}, requested: {self.requested}"
        )


class OverpaymentError(LedgerError):
    def __init__(self, amount: Decimal, limit: Decimal, what: str = "due amount"):
        self.amount = amount
        self.limit = limit
        super().__init__(f"Amount {amount} exceeds {what} {limit}")


class PaymentIncompleteError(LedgerError):
    status_code = 409

    def __init__(self, due_amount: Decimal):
        self.due_amount = due_amount
        super().__init__(f"Cannot mark as delivered with a pending due of {due_amount}")


class InvalidLineItemError(LedgerError):
    status_code = 422


class DeletionBlockedError(LedgerError):
    status_code = 409


class RecordNotFoundError(LedgerError):
    status_code = 404

    def __init__(self, what: str, ident: Optional[object] = None):
        self.what = what
        self.ident = ident
        msg = f"{what} not found" if ident is None else f"{what} #{ident} not found"
        super().__init__(msg)


class InvalidOperationError(LedgerError):
    pass
