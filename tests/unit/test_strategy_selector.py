"""Tests for domain.extraction.strategy_selector — strategy selection and fallback."""

from domain.extraction.strategy_selector import (
    REQUESTED_STRATEGIES,
    ExtractionStrategy,
    build_fallback_chain,
    needs_ocr_retry,
    select_strategy,
)


class TestSelectStrategy:
    """Tests for select_strategy."""

    def test_text_pdf_high_chars(self):
        result = select_strategy(chars_count=1500)
        assert result == ExtractionStrategy.PDFPLUMBER_TEXT

    def test_scanned_pdf_low_chars(self):
        result = select_strategy(chars_count=10)
        assert result == ExtractionStrategy.OCR_TESSERACT

    def test_threshold_boundary_below(self):
        result = select_strategy(chars_count=199)
        assert result == ExtractionStrategy.OCR_TESSERACT

    def test_threshold_boundary_at(self):
        result = select_strategy(chars_count=200)
        assert result == ExtractionStrategy.PDFPLUMBER_TEXT

    def test_custom_threshold(self):
        result = select_strategy(chars_count=80, threshold=100)
        assert result == ExtractionStrategy.OCR_TESSERACT

    def test_zero_chars(self):
        result = select_strategy(chars_count=0)
        assert result == ExtractionStrategy.OCR_TESSERACT


class TestNeedsOcrRetry:
    """Tests for needs_ocr_retry."""

    def test_short_text(self):
        assert needs_ocr_retry(chars_count=50, parts_count=3)

    def test_no_parts(self):
        assert needs_ocr_retry(chars_count=5000, parts_count=0)

    def test_rich_text_with_parts(self):
        assert not needs_ocr_retry(chars_count=5000, parts_count=4)


class TestBuildFallbackChain:
    """Tests for build_fallback_chain."""

    def test_fallback_from_pdfplumber_text(self):
        chain = build_fallback_chain(ExtractionStrategy.PDFPLUMBER_TEXT)
        assert chain == [
            ExtractionStrategy.PDFPLUMBER_TEXT,
            ExtractionStrategy.OCR_TESSERACT,
        ]

    def test_fallback_from_tesseract(self):
        chain = build_fallback_chain(ExtractionStrategy.OCR_TESSERACT)
        assert chain == [ExtractionStrategy.OCR_TESSERACT]

    def test_plain_text_gets_full_chain(self):
        chain = build_fallback_chain(ExtractionStrategy.PLAIN_TEXT)
        assert chain[0] == ExtractionStrategy.PDFPLUMBER_TEXT


class TestRequestedStrategies:
    """Tests for the CLI strategy names."""

    def test_auto_has_no_forced_strategy(self):
        assert REQUESTED_STRATEGIES["auto"] is None

    def test_ocr_forces_tesseract(self):
        assert REQUESTED_STRATEGIES["ocr"] == ExtractionStrategy.OCR_TESSERACT
