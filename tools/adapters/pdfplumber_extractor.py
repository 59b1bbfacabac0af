"""PDF text extraction adapter using pdfplumber."""

import logging

from domain.extraction.strategy_selector import ExtractionStrategy
from domain.ports import PDFTextExtractorPort

logger = logging.getLogger(__name__)


class PdfplumberExtractor(PDFTextExtractorPort):
    """Extracts the text layer of native expertise-report PDFs."""

    def __init__(self, page_limit: int | None = None):
        self.page_limit = page_limit

    def _failure(self, error: str) -> dict:
        logger.warning("pdfplumber: %s", error)
        return {
            "success": False,
            "error": error,
            "pages": [],
            "total_pages": 0,
            "strategy": ExtractionStrategy.PDFPLUMBER_TEXT.value,
        }

    def extract_text(self, pdf_path: str) -> dict:
        try:
            import pdfplumber
        except ImportError:
            return self._failure("pdfplumber non installé")

        try:
            pages = []
            with pdfplumber.open(pdf_path) as pdf:
                for i, page in enumerate(pdf.pages, 1):
                    if self.page_limit and i > self.page_limit:
                        break
                    text = page.extract_text() or ""
                    pages.append({
                        "page": i,
                        "text": text,
                        "chars_count": len(text),
                    })
            logger.info("%s: %d page(s) lues par pdfplumber", pdf_path, len(pages))
            return {
                "success": True,
                "pages": pages,
                "total_pages": len(pages),
                "strategy": ExtractionStrategy.PDFPLUMBER_TEXT.value,
            }
        except Exception as e:
            return self._failure(str(e))
