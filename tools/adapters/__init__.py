"""PDF extraction adapters implementing domain ports."""

from tools.adapters.pdfplumber_extractor import PdfplumberExtractor
from tools.adapters.tesseract_ocr import TesseractOCR

__all__ = ["PdfplumberExtractor", "TesseractOCR"]
