# hospital_ledger/api/router.py
from fastapi import APIRouter
from hospital_ledger.api import (
    routes_optics_items,
    routes_optics_stock,
    routes_optics_sales,
    routes_optics_purchases,
    routes_optics_vendors,
    routes_accounts,
)

api_router = APIRouter()

api_router.include_router(routes_optics_items.router)
api_router.include_router(routes_optics_stock.router)
api_router.include_router(routes_optics_sales.router)
api_router.include_router(routes_optics_purchases.router)
api_router.include_router(routes_optics_vendors.router)
api_router.include_router(routes_accounts.router)
