from __future__ import annotations

from expense_scanner.modules.receipts.ocr import (
    TesseractTextDetector,
    TextDetectionError,
    TextDetector,
    TextractTextDetector,
    extract_text,
)


class _Detector(TextDetector):
    backend = "fake"

    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self._text = text
        self._error = error

    def detect_text(self, body: bytes, content_type: str) -> str:
        if self._error is not None:
            raise self._error
        return self._text


def test_extract_text_splits_and_trims_lines():
    lines = extract_text(_Detector("  CORNER DELI \n\n Total 4.00  \n"), b"x", "image/png")
    assert lines == ["CORNER DELI", "Total 4.00"]


def test_extract_text_falls_back_to_placeholder_on_error():
    lines = extract_text(_Detector(error=TextDetectionError("boom")), b"12345", "image/jpeg")

    assert lines[0] == "** RECEIPT - TEXT EXTRACTION UNAVAILABLE **"
    assert "File type: image/jpeg" in lines
    assert "Size: 5 bytes (0 KB)" in lines
    assert "Merchant Name: [Please enter merchant name]" in lines
    assert "Error: boom" in lines


def test_extract_text_treats_empty_output_as_failure():
    lines = extract_text(_Detector("   \n"), b"x", "application/pdf")
    assert "Error: No text found in document" in lines


def test_textract_detector_keeps_line_blocks_only():
    class _Client:
        def detect_document_text(self, *, Document: dict) -> dict:  # noqa: N803
            return {
                "Blocks": [
                    {"BlockType": "PAGE"},
                    {"BlockType": "LINE", "Text": "KWIK MART"},
                    {"BlockType": "WORD", "Text": "KWIK"},
                    {"BlockType": "LINE", "Text": "Total $3.10"},
                ]
            }

    text = TextractTextDetector(client=_Client()).detect_text(b"x", "image/png")
    assert text == "KWIK MART\nTotal $3.10"


def test_textract_detector_requires_blocks():
    class _Client:
        def detect_document_text(self, *, Document: dict) -> dict:  # noqa: N803
            return {"Blocks": []}

    lines = extract_text(TextractTextDetector(client=_Client()), b"x", "image/png")
    assert "Error: No text blocks found in document" in lines


def test_tesseract_detector_reads_embedded_pdf_text(monkeypatch):
    import pypdf

    class _Page:
        images: list = []

        def __init__(self, text: str) -> None:
            self._text = text

        def extract_text(self) -> str:
            return self._text

    class _Reader:
        def __init__(self, _stream) -> None:
            self.pages = [_Page("COFFEE HOUSE"), _Page("")]

    monkeypatch.setattr(pypdf, "PdfReader", _Reader)

    text = TesseractTextDetector().detect_text(b"%PDF-1.4 stub", "application/pdf")
    assert text == "COFFEE HOUSE\n"


def test_tesseract_detector_rejects_unreadable_image():
    lines = extract_text(TesseractTextDetector(), b"not an image", "image/png")
    assert lines[0] == "** RECEIPT - TEXT EXTRACTION UNAVAILABLE **"
    assert any(line.startswith("Error: Could not open image") for line in lines)
