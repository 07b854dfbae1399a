# hospital_ledger/models/__init__.py
from .patient import Patient
from .registry import PaymentMethod, HospitalIncomeCategory, HospitalExpenseCategory, NumberSeries
from .inventory import ItemKind, MovementType, Frame, LensType, CompleteGlasses, StockMovement
from .vendor import BalanceType, VendorTxnType, OpticsVendor, VendorTransaction
from .purchase import PaymentStatus, OpticsPurchase
from .sale import SaleStatus, OpticsSale, OpticsSaleItem, OpticsSalePayment
from .accounts import (
    EntryType,
    FundType,
    OpticsTransaction,
    OpticsFundTransaction,
    HospitalTransaction,
)

__all__ = [
    "Patient",
    "PaymentMethod",
    "HospitalIncomeCategory",
    "HospitalExpenseCategory",
    "NumberSeries",
    "ItemKind",
    "MovementType",
    "Frame",
    "LensType",
    "CompleteGlasses",
    "StockMovement",
    "BalanceType",
    "VendorTxnType",
    "OpticsVendor",
    "VendorTransaction",
    "PaymentStatus",
    "OpticsPurchase",
    "SaleStatus",
    "OpticsSale",
    "OpticsSaleItem",
    "OpticsSalePayment",
    "EntryType",
    "FundType",
    "OpticsTransaction",
    "OpticsFundTransaction",
    "HospitalTransaction",
]
