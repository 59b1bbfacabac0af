"""Domain extraction strategy selection — pure functions, zero external dependencies.

Only stdlib imports allowed.
"""

from enum import Enum


class ExtractionStrategy(Enum):
    """Available report text extraction strategies."""

    PLAIN_TEXT = "plain_text"
    PDFPLUMBER_TEXT = "pdfplumber_text"
    OCR_TESSERACT = "ocr_tesseract"


REQUESTED_STRATEGIES = {
    "auto": None,
    "text": ExtractionStrategy.PDFPLUMBER_TEXT,
    "ocr": ExtractionStrategy.OCR_TESSERACT,
}


def select_strategy(chars_count, threshold=200):
    """Select extraction strategy from the size of the PDF text layer."""
    if chars_count < threshold:
        return ExtractionStrategy.OCR_TESSERACT
    return ExtractionStrategy.PDFPLUMBER_TEXT


def needs_ocr_retry(chars_count, parts_count, threshold=200):
    """True when a text-layer extraction is too thin to trust."""
    return chars_count < threshold or parts_count == 0


def build_fallback_chain(primary):
    """Build ordered fallback chain starting from the primary strategy."""
    full_chain = [
        ExtractionStrategy.PDFPLUMBER_TEXT,
        ExtractionStrategy.OCR_TESSERACT,
    ]
    if primary in full_chain:
        idx = full_chain.index(primary)
        return full_chain[idx:]
    return full_chain
