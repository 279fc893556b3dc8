from __future__ import annotations

from fastapi.testclient import TestClient

from expense_scanner.core.config import settings
from expense_scanner.main import app
from expense_scanner.modules.receipts import diagnostics
from expense_scanner.modules.receipts.analysis import (
    DisabledExpenseAnalyzer,
    ExpenseAnalysisError,
    ExpenseAnalyzer,
)
from expense_scanner.modules.receipts.ocr import TextDetectionError, TextDetector


class _Detector(TextDetector):
    backend = "fake"

    def __init__(self, error: Exception | None = None) -> None:
        self._error = error

    def detect_text(self, body: bytes, content_type: str) -> str:
        assert body.startswith(b"\x89PNG")
        if self._error is not None:
            raise self._error
        return ""


def test_healthz():
    client = TestClient(app)
    assert client.get("/healthz").json() == {"status": "ok"}


def test_storage_healthz_runs_local_write_test():
    client = TestClient(app)
    resp = client.get("/healthz/storage", params={"write_test": "true"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["backend"] == "local"
    assert body["write_test"]["ok"] is True


def test_ocr_healthz_reports_missing_credentials(monkeypatch):
    monkeypatch.setattr(settings, "ocr_backend", "textract")
    monkeypatch.setattr(settings, "aws_access_key_id", None)
    monkeypatch.setattr(settings, "aws_secret_access_key", None)

    resp = TestClient(app).get("/healthz/ocr")

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"] == "missing_aws_credentials"
    assert body["missing"] == ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"]


def test_ocr_healthz_probes_configured_backends(monkeypatch):
    monkeypatch.setattr(diagnostics, "get_text_detector", lambda: _Detector())
    monkeypatch.setattr(diagnostics, "get_expense_analyzer", lambda: DisabledExpenseAnalyzer())

    resp = TestClient(app).get("/healthz/ocr")

    assert resp.status_code == 200
    body = resp.json()
    assert body["text_detection"]["ok"] is True
    assert body["expense_analysis"] == {"ok": True, "backend": "disabled", "enabled": False}


def test_ocr_healthz_unwraps_backend_errors(monkeypatch):
    error = TextDetectionError("Textract text extraction failed")
    error.__cause__ = ConnectionError("no route to host")

    monkeypatch.setattr(diagnostics, "get_text_detector", lambda: _Detector(error))
    monkeypatch.setattr(diagnostics, "get_expense_analyzer", lambda: DisabledExpenseAnalyzer())

    resp = TestClient(app).get("/healthz/ocr")

    assert resp.status_code == 503
    detection = resp.json()["text_detection"]
    assert detection["ok"] is False
    assert detection["error_type"] == "ConnectionError"
    assert detection["error"] == "no route to host"


def test_blank_expense_probe_counts_as_reachable():
    class _Analyzer(ExpenseAnalyzer):
        backend = "fake"

        def analyze_expense(self, body: bytes):
            raise ExpenseAnalysisError("No expense data found in document")

    result = diagnostics._probe_expense_analyzer(_Analyzer(), diagnostics.probe_image())
    assert result["ok"] is True
    assert result["backend"] == "fake"
