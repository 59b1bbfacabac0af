"""Extraction context — the read-only input every extraction stage receives.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

from dataclasses import dataclass

from domain.labor_table import ingredient_labor_mentioned, parse_labor_table
from domain.models import DEFAULT_SETTINGS, ExtractionSettings, LaborRow, ReportType
from domain.report_type import detect_report_type

# "1272.69", "60,00", "1 272,69"
AMOUNT = r"\d{1,3}(?:[ \u00a0]\d{3})+[.,]\d{2}\b|\d+[.,]\d+"


@dataclass(frozen=True)
class ExtractionContext:
    """Raw report text plus hints computed once before the stages run."""

    text: str
    lines: tuple[str, ...] = ()
    settings: ExtractionSettings = DEFAULT_SETTINGS
    report_type: ReportType = ReportType.GENERIC
    labor_rows: tuple[LaborRow, ...] = ()
    ingredient_labor: bool = False

    @classmethod
    def from_text(cls, text, settings: ExtractionSettings | None = None) -> ExtractionContext:
        text = text if isinstance(text, str) else ""
        rows = parse_labor_table(text)
        return cls(
            text=text,
            lines=tuple(text.splitlines()),
            settings=settings or DEFAULT_SETTINGS,
            report_type=detect_report_type(text),
            labor_rows=tuple(rows),
            ingredient_labor=ingredient_labor_mentioned(text, rows),
        )
