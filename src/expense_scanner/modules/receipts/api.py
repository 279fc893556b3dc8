from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from expense_scanner.api.deps import get_current_user
from expense_scanner.core.config import settings
from expense_scanner.core.db import db_session
from expense_scanner.core.logging import get_logger, log_event, log_exception
from expense_scanner.core.security import decode_object_token
from expense_scanner.core.storage import (
    ObjectStorage,
    StorageError,
    get_storage,
    guess_content_type,
)
from expense_scanner.modules.identity.models import User
from expense_scanner.modules.receipts.schemas import (
    ScanReceiptOut,
    SignedUrlOut,
    UploadReceiptOut,
)
from expense_scanner.modules.receipts.service import (
    ReceiptPipeline,
    get_receipt_pipeline,
    validate_receipt,
)
from expense_scanner.modules.receipts.storage import receipt_key_prefix, upload_receipt
from expense_scanner.modules.receipts.types import RawDocument
from expense_scanner.modules.taxonomy.service import list_category_names, list_tag_names

router = APIRouter(tags=["receipts"])
logger = get_logger(__name__)


async def _read_receipt(upload: UploadFile | None) -> RawDocument:
    if upload is None or not upload.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    # The multipart parser records the size, so oversized uploads never get buffered.
    if upload.size is not None:
        validate_receipt(content_type=upload.content_type, byte_size=upload.size)
    body = await upload.read()
    validate_receipt(content_type=upload.content_type, byte_size=len(body))
    log_event(
        logger,
        "upload.received",
        filename=upload.filename,
        content_type=upload.content_type,
        byte_size=len(body),
    )
    return RawDocument(body=body, content_type=upload.content_type or "", filename=upload.filename)


def _assert_owned(*, key: str, user: User) -> None:
    if not key.startswith(receipt_key_prefix(str(user.id))) or ".." in key:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")


@router.post(
    "/scan-receipt",
    response_model=ScanReceiptOut,
    response_model_exclude_none=True,
)
async def scan_receipt(
    receipt: UploadFile | None = File(None),
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
    pipeline: ReceiptPipeline = Depends(get_receipt_pipeline),
) -> ScanReceiptOut:
    document = await _read_receipt(receipt)
    try:
        result = await pipeline.scan(
            document,
            owner_id=str(user.id),
            categories=list_category_names(session, user_id=user.id),
            tags=list_tag_names(session, user_id=user.id),
        )
    except Exception as e:
        log_exception(logger, "receipt.scan.failure", filename=document.filename)
        detail = "Failed to scan receipt"
        if settings.environment != "production":
            detail = f"{detail}: {e}"
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail
        ) from e
    return ScanReceiptOut.from_result(result)


@router.post("/upload-receipt", response_model=UploadReceiptOut)
async def upload_receipt_only(
    receipt: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
) -> UploadReceiptOut:
    document = await _read_receipt(receipt)
    try:
        reference = await run_in_threadpool(
            upload_receipt,
            storage,
            body=document.body,
            filename=document.filename,
            content_type=document.content_type,
            owner_id=str(user.id),
        )
    except Exception as e:
        log_exception(logger, "receipt.upload.failure", filename=document.filename)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to upload receipt"
        ) from e
    return UploadReceiptOut(
        key=reference.key,
        url=reference.url,
        size=reference.size,
        file_name=document.filename,
        content_type=document.content_type,
    )


@router.get("/receipts/url", response_model=SignedUrlOut)
def refresh_receipt_url(
    key: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
) -> SignedUrlOut:
    _assert_owned(key=key, user=user)
    expires_in = settings.receipt_refresh_url_ttl_seconds
    try:
        url = storage.signed_url(key=key, expires_seconds=expires_in)
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate receipt URL",
        ) from e
    return SignedUrlOut(key=key, url=url, expires_in=expires_in)


@router.delete("/receipts", status_code=204)
def delete_receipt(
    key: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
) -> Response:
    _assert_owned(key=key, user=user)
    try:
        storage.delete(key=key)
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete receipt",
        ) from e
    log_event(logger, "receipt.deleted", storage_key=key)
    return Response(status_code=204)


@router.get("/receipts/object")
def download_receipt_object(
    token: str = Query(..., min_length=1),
    storage: ObjectStorage = Depends(get_storage),
) -> Response:
    key = decode_object_token(token)
    if not key:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")
    try:
        body = storage.get(key=key)
    except StorageError:
        return Response(status_code=404)
    return Response(content=body, media_type=guess_content_type(key))
