"""OCR text extraction adapter using Tesseract (pytesseract + pdf2image)."""

import logging
import subprocess

from domain.extraction.strategy_selector import ExtractionStrategy
from domain.ports import OCRProcessorPort

logger = logging.getLogger(__name__)


class TesseractOCR(OCRProcessorPort):
    """Extracts text from scanned expertise reports rendered page by page."""

    def __init__(self, dpi: int = 300):
        self.dpi = dpi

    def _failure(self, error: str) -> dict:
        logger.warning("tesseract: %s", error)
        return {
            "success": False,
            "error": error,
            "pages": [],
            "total_pages": 0,
            "strategy": ExtractionStrategy.OCR_TESSERACT.value,
        }

    def extract_text_ocr(self, pdf_path: str, lang: str = "fra+eng") -> dict:
        try:
            result = subprocess.run(
                ["tesseract", "--version"],
                capture_output=True, text=True,
            )
            if result.returncode != 0:
                raise RuntimeError("Tesseract not available")
        except (FileNotFoundError, RuntimeError):
            return self._failure("Tesseract non installé ou absent du PATH")

        try:
            from pdf2image import convert_from_path
            import pytesseract

            images = convert_from_path(pdf_path, dpi=self.dpi)
            pages = []
            for i, img in enumerate(images, 1):
                text = pytesseract.image_to_string(img, lang=lang)
                pages.append({
                    "page": i,
                    "text": text,
                    "chars_count": len(text),
                })
            logger.info("%s: %d page(s) OCR (%s)", pdf_path, len(pages), lang)
            return {
                "success": True,
                "pages": pages,
                "total_pages": len(pages),
                "strategy": ExtractionStrategy.OCR_TESSERACT.value,
            }
        except ImportError as e:
            return self._failure(f"Dépendance manquante: {e}")
        except Exception as e:
            return self._failure(str(e))
