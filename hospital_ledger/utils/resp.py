"""
JSON envelope shared by every ledger endpoint:

    {"status": true,  "data": ..., "error": null}
    {"status": false, "data": null, "error": {"msg": "..."}}

Decimals go out through `jsonable_encoder`, so money keeps its two places.
"""
from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from hospital_ledger.schemas.common import ApiError, ApiResponse
from hospital_ledger.services.errors import LedgerError


def _send(payload: ApiResponse, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    return _send(ApiResponse(status=True, data=data), status_code)


def created(data: Any = None) -> JSONResponse:
    """A new ledger row (sale, purchase, posting, movement) was written."""
    return ok(data, status_code=201)


def err(msg: str, status_code: int = 400) -> JSONResponse:
    return _send(ApiResponse(status=False, error=ApiError(msg=msg)), status_code)


def ledger_err(e: LedgerError) -> JSONResponse:
    # each error class carries its own HTTP status
    return err(str(e), e.status_code)
