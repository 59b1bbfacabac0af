"""Domain ports — abstract interfaces for text acquisition.

Both ports return the same result dictionary::

    {"success": bool, "pages": [{"page": int, "text": str, "chars_count": int}],
     "total_pages": int, "strategy": str, "error": str (on failure)}

Adapters report failures in that dictionary instead of raising.

Only stdlib (abc) imports allowed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# ── Infrastructure Ports ──────────────────────────────────────────────────


class PDFTextExtractorPort(ABC):
    """Port for extracting the embedded text layer of PDF files."""

    @abstractmethod
    def extract_text(self, pdf_path: str) -> dict: ...


class OCRProcessorPort(ABC):
    """Port for OCR-based text extraction from scanned PDFs."""

    @abstractmethod
    def extract_text_ocr(self, pdf_path: str, lang: str = "fra+eng") -> dict: ...


def join_pages(result: dict) -> str:
    """Page texts of a port result, separated by form feeds."""
    return "\f".join(page.get("text", "") for page in result.get("pages", []))
