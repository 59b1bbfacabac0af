"""Domain report classification — pure functions, zero external dependencies.

Only stdlib and domain.models imports allowed.
"""

import re

from domain.models import ReportType

_BCA = re.compile(
    r"ceci n['’]est pas un ordre de r[ée]paration|bca\s+expertise|montant\s+r[ée]paration\s+ttc",
    re.IGNORECASE,
)
_INDEPENDENT = re.compile(r"\b[ée]metteur\b", re.IGNORECASE)
_STRUCTURED = re.compile(
    r"liste\s+des\s+pi[èe]ces|qt[ée]|libell[ée]|r[ée]f\.", re.IGNORECASE
)


def detect_report_type(text):
    """Classify a report by keyword, first match wins."""
    if not isinstance(text, str) or not text:
        return ReportType.GENERIC
    if _BCA.search(text):
        return ReportType.BCA
    if _INDEPENDENT.search(text):
        return ReportType.INDEPENDENT
    if _STRUCTURED.search(text):
        return ReportType.STRUCTURED_PDF
    return ReportType.GENERIC
