"""Report header stage: type, number and BCA summary lines.

Only stdlib and domain imports allowed.
"""

import logging
import math
import re

from domain.models import UNSPECIFIED, LaborLine
from domain.numbers import parse_number

logger = logging.getLogger(__name__)

_REPORT_NUMBER = re.compile(
    r"(?:N[°o]\s*(?:de\s+)?rapport|Rapport\s+n[°o]|Num[ée]ro(?:\s+de\s+rapport)?)"
    r"\s*:?\s*((?=[A-Z/-]*\d)[A-Z0-9][A-Z0-9/-]{3,})",
    re.IGNORECASE,
)
_SUMMARY_LINE = re.compile(
    r"^(Main d[’' ]?oeuvre\s*HT|Pi[èe]ces\s*HT|Ingr[eé]dients?\s+peinture\s*HT|Forfait\s*HT)"
    r"\s*[.:]*\s*(\d+(?:[ \t]?\d{3})*(?:[.,]\d+)?)",
    re.IGNORECASE,
)


def read_summary_lines(lines):
    """Amounts of the ``Main d'oeuvre HT`` / ``Pièces HT`` / ... recap block."""
    summary = {}
    for line in lines:
        match = _SUMMARY_LINE.match(line.strip())
        if not match:
            continue
        amount = parse_number(match.group(2))
        if math.isnan(amount):
            continue
        key = match.group(1).lower()
        if key.startswith("main"):
            summary["mo"] = amount
        elif key.startswith("pi"):
            summary["pieces"] = amount
        elif key.startswith("ingr"):
            summary["ingredients"] = amount
        else:
            summary["forfait"] = amount
    return summary


def extract_report_header(context, document):
    doc = document.copy()
    doc.report.report_type = context.report_type

    match = _REPORT_NUMBER.search(context.text)
    if match:
        doc.report.report_number = match.group(1)

    summary = read_summary_lines(context.lines)
    if summary:
        logger.debug("Récapitulatif trouvé: %s", summary)
        doc.debug["summaryLines"] = summary
    if "mo" in summary:
        doc.labor_total = summary["mo"]
    if "forfait" in summary:
        doc.labor_details.append(
            LaborLine(type="Forfait", hours=UNSPECIFIED, rate=UNSPECIFIED, total=summary["forfait"])
        )
    return doc
