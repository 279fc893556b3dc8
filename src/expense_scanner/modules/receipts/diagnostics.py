from __future__ import annotations

import time
from io import BytesIO
from typing import Any

from expense_scanner.core.aws import client_error_info, missing_credentials
from expense_scanner.core.config import settings
from expense_scanner.core.logging import monotonic_ms
from expense_scanner.modules.receipts.analysis import (
    DisabledExpenseAnalyzer,
    ExpenseAnalysisError,
    ExpenseAnalyzer,
    get_expense_analyzer,
)
from expense_scanner.modules.receipts.ocr import TextDetector, get_text_detector


def probe_image() -> bytes:
    from PIL import Image

    buf = BytesIO()
    Image.new("RGB", (1, 1), "white").save(buf, format="PNG")
    return buf.getvalue()


def _error_info(error: Exception) -> dict[str, Any]:
    # Report the SDK error when the backend wrapped one.
    return client_error_info(error.__cause__ or error)


def _probe_text_detector(detector: TextDetector, image: bytes) -> dict[str, Any]:
    start = time.monotonic()
    try:
        detector.detect_text(image, "image/png")
    except Exception as e:  # noqa: BLE001
        return {
            "ok": False,
            "backend": detector.backend,
            "duration_ms": monotonic_ms(start),
            **_error_info(e),
        }
    return {"ok": True, "backend": detector.backend, "duration_ms": monotonic_ms(start)}


def _probe_expense_analyzer(analyzer: ExpenseAnalyzer, image: bytes) -> dict[str, Any]:
    if isinstance(analyzer, DisabledExpenseAnalyzer):
        return {"ok": True, "backend": analyzer.backend, "enabled": False}
    start = time.monotonic()
    try:
        analyzer.analyze_expense(image)
    except ExpenseAnalysisError as e:
        # A blank probe image legitimately yields no expense document.
        if e.__cause__ is None:
            return {"ok": True, "backend": analyzer.backend, "duration_ms": monotonic_ms(start)}
        return {
            "ok": False,
            "backend": analyzer.backend,
            "duration_ms": monotonic_ms(start),
            **_error_info(e),
        }
    return {"ok": True, "backend": analyzer.backend, "duration_ms": monotonic_ms(start)}


def diagnose_extraction() -> dict[str, Any]:
    """
    Connectivity diagnostics for the OCR and structured-extraction backends.

    Sends a 1x1 PNG to each configured backend. Never returns credentials.
    """
    result: dict[str, Any] = {
        "ok": True,
        "ocr_backend": settings.ocr_backend,
        "expense_analysis_backend": settings.expense_analysis_backend,
    }
    uses_aws = "textract" in {settings.ocr_backend, settings.expense_analysis_backend}
    if uses_aws:
        missing = missing_credentials()
        if missing:
            return {**result, "ok": False, "error": "missing_aws_credentials", "missing": missing}

    image = probe_image()
    result["text_detection"] = _probe_text_detector(get_text_detector(), image)
    result["expense_analysis"] = _probe_expense_analyzer(get_expense_analyzer(), image)
    result["ok"] = result["text_detection"]["ok"] and result["expense_analysis"]["ok"]
    return result
