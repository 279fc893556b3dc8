from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from expense_scanner.core.storage import diagnose_storage
from expense_scanner.modules.identity.api import router as identity_router
from expense_scanner.modules.receipts.api import router as receipts_router
from expense_scanner.modules.receipts.diagnostics import diagnose_extraction
from expense_scanner.modules.taxonomy.api import router as taxonomy_router

router = APIRouter()

router.include_router(identity_router, prefix="/api")
router.include_router(taxonomy_router, prefix="/api")
router.include_router(receipts_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz/storage")
def healthz_storage(*, write_test: bool = False) -> JSONResponse:
    result = diagnose_storage(write_test=write_test)
    status_code = 200 if result.get("ok") else 503
    return JSONResponse(status_code=status_code, content=result)


@router.get("/healthz/ocr")
def healthz_ocr() -> JSONResponse:
    result = diagnose_extraction()
    status_code = 200 if result.get("ok") else 503
    return JSONResponse(status_code=status_code, content=result)
