from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Sequence
from datetime import date

from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool

from expense_scanner.core.config import settings
from expense_scanner.core.logging import (
    get_logger,
    log_event,
    monotonic_ms,
    reset_scan_context,
    set_scan_context,
)
from expense_scanner.core.storage import ObjectStorage, get_storage
from expense_scanner.modules.receipts.analysis import (
    ExpenseAnalyzer,
    analyze_expense,
    get_expense_analyzer,
)
from expense_scanner.modules.receipts.composer import compose_suggestion
from expense_scanner.modules.receipts.inference import infer_category, suggest_tags
from expense_scanner.modules.receipts.ocr import TextDetector, extract_text, get_text_detector
from expense_scanner.modules.receipts.parser import parse_receipt
from expense_scanner.modules.receipts.storage import store_receipt
from expense_scanner.modules.receipts.types import (
    ALLOWED_CONTENT_TYPES,
    ParsedReceipt,
    RawDocument,
    ScanResult,
)

logger = get_logger(__name__)

EXTRACTION_STRUCTURED = "expense_analysis"
EXTRACTION_HEURISTIC = "text_parsing"


def _megabytes(byte_size: int) -> str:
    return f"{byte_size / (1024 * 1024):.2f}MB"


def validate_receipt(*, content_type: str | None, byte_size: int) -> None:
    if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only images and PDFs are allowed.",
        )
    limit = settings.receipt_max_bytes
    if byte_size > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                f"File too large. Maximum size is {_megabytes(limit)}, "
                f"received {_megabytes(byte_size)}."
            ),
        )


class ReceiptPipeline:
    """Turns one uploaded receipt into a suggested expense.

    Storage and structured extraction run concurrently. Each collaborator
    failure is absorbed by exactly one fallback: a degraded storage reference,
    OCR plus heuristic parsing, or the OCR placeholder document.
    """

    def __init__(
        self,
        *,
        storage: ObjectStorage,
        text_detector: TextDetector,
        expense_analyzer: ExpenseAnalyzer,
    ) -> None:
        self.storage = storage
        self.text_detector = text_detector
        self.expense_analyzer = expense_analyzer

    async def _analyze(self, document: RawDocument) -> ParsedReceipt | None:
        start = time.monotonic()
        try:
            return await run_in_threadpool(analyze_expense, self.expense_analyzer, document.body)
        except Exception as e:  # noqa: BLE001
            log_event(
                logger,
                "receipt.analysis.fallback",
                backend=self.expense_analyzer.backend,
                error_type=type(e).__name__,
                error=str(e),
                duration_ms=monotonic_ms(start),
            )
            return None

    async def scan(
        self,
        document: RawDocument,
        *,
        owner_id: str,
        categories: Sequence[str] = (),
        tags: Sequence[str] = (),
        today: date | None = None,
    ) -> ScanResult:
        token = set_scan_context(uuid.uuid4().hex)
        start = time.monotonic()
        try:
            log_event(
                logger,
                "receipt.scan.start",
                filename=document.filename,
                content_type=document.content_type,
                byte_size=document.size,
            )
            reference, structured = await asyncio.gather(
                run_in_threadpool(
                    store_receipt,
                    self.storage,
                    body=document.body,
                    filename=document.filename,
                    content_type=document.content_type,
                    owner_id=owner_id,
                ),
                self._analyze(document),
            )

            if structured is not None:
                parsed = structured
                parsed.category = infer_category(parsed.merchant_name, categories)
                parsed.payment_date = parsed.date
                extracted_text: list[str] = []
                method = EXTRACTION_STRUCTURED
            else:
                extracted_text = await run_in_threadpool(
                    extract_text, self.text_detector, document.body, document.content_type
                )
                parsed = parse_receipt(extracted_text, categories)
                method = EXTRACTION_HEURISTIC

            merchant = parsed.merchant_name if parsed.has_merchant() else None
            suggested_tags = suggest_tags(
                merchant_name=merchant, category=parsed.category, available_tags=tags
            )
            suggestion = compose_suggestion(
                parsed=parsed,
                reference=reference,
                document=document,
                tags=suggested_tags,
                today=today,
            )
            result = ScanResult(
                document=document,
                reference=reference,
                extracted_text=extracted_text,
                parsed=parsed,
                suggestion=suggestion,
                extraction_method=method,
            )
            log_event(
                logger,
                "receipt.scan.finish",
                extraction_method=method,
                storage_type=reference.storage_type,
                merchant_found=parsed.has_merchant(),
                total_found=parsed.total_amount is not None,
                tag_count=len(suggested_tags),
                duration_ms=monotonic_ms(start),
            )
            return result
        finally:
            reset_scan_context(token)


def get_receipt_pipeline() -> ReceiptPipeline:
    return ReceiptPipeline(
        storage=get_storage(),
        text_detector=get_text_detector(),
        expense_analyzer=get_expense_analyzer(),
    )
