"""Domain labor parsing — pure functions, zero external dependencies.

Labor appears in reports as column tables (``T1 1,00 50,00 50,00``), flat
rates (``FORFAITS 3h 75 225``) and paint-ingredient summary lines written in
half a dozen vendor formats.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
import re

from domain.models import DEFAULT_SETTINGS, LaborLine, LaborRow, LaborSummary
from domain.numbers import parse_number, round_to_two, safe_add

logger = logging.getLogger(__name__)

INGREDIENT_LABEL = "Ingrédients peinture"
METAL_VERNIS_LABEL = "Ingrédient Métal Vernis"

_NUM = r"-?\d+(?:\s?\d{3})*(?:[.,]\d+)?"
_TABLE_ROW = re.compile(
    rf"^(.+?)\s+({_NUM})h?\s+({_NUM})\s+({_NUM})(?:\s+({_NUM}))?(?:\s+({_NUM}))?$",
    re.IGNORECASE,
)
_LOOSE_NUMBER = re.compile(r"-?\d+(?:[.,]\d+)?")
_DECIMAL = re.compile(r"\d+[,.]\d+")


def _optional(raw: str | None) -> float | None:
    if raw is None:
        return None
    value = parse_number(raw)
    return None if math.isnan(value) else value


def _clean_label(label: str) -> str:
    # left columns of "!"-framed reports bleed into the label
    if "!" in label:
        label = label.rsplit("!", 1)[1]
    return label.strip()


def parse_labor_table(text: str) -> list[LaborRow]:
    """Parse ``<label> <hours>[h] <rate> <HT> [<TVA>] [<TTC>]`` rows.

    Pages are split on form feeds, ``|`` column rules become spaces. Lines
    mentioning FORFAIT with at least three numbers are read loosely.
    """
    if not isinstance(text, str):
        return []

    rows = []
    for page in text.split("\f"):
        for raw in page.split("\n"):
            line = raw.replace("|", " ").strip()
            if not line:
                continue

            match = _TABLE_ROW.match(line)
            if match:
                label = _clean_label(match.group(1))
                if not label:
                    continue
                rows.append(LaborRow(
                    label=label,
                    hours=parse_number(match.group(2)),
                    rate=parse_number(match.group(3)),
                    montant_ht=parse_number(match.group(4)),
                    montant_tva=_optional(match.group(5)),
                    montant_ttc=_optional(match.group(6)),
                ))
                continue

            if re.search(r"FORFAIT", line, re.IGNORECASE):
                numbers = _LOOSE_NUMBER.findall(line)
                if len(numbers) >= 3:
                    extra = numbers[3:5] + [None] * (5 - len(numbers))
                    rows.append(LaborRow(
                        label=_clean_label(re.sub(r"\d.*$", "", line)) or "FORFAITS",
                        hours=parse_number(numbers[0]),
                        rate=parse_number(numbers[1]),
                        montant_ht=parse_number(numbers[2]),
                        montant_tva=_optional(extra[0]),
                        montant_ttc=_optional(extra[1]),
                    ))
    return rows


def extract_keyword_amounts(text: str, keywords) -> dict[str, float]:
    """Last decimal amount on the first line where each keyword stands alone."""
    if not isinstance(text, str) or not isinstance(keywords, (list, tuple)):
        return {}

    amounts = {}
    lines = text.split("\n")
    for keyword in keywords:
        pattern = re.compile(rf"(?:^|\s){re.escape(keyword)}(?:\s|$)", re.IGNORECASE)
        for line in lines:
            if not pattern.search(line):
                continue
            numbers = _DECIMAL.findall(line)
            if numbers:
                amounts[keyword] = parse_number(numbers[-1])
                break
    return amounts


# ── Free-text labor aggregation ─────────────────────────────────────────

_MO_TOTAL = re.compile(
    r"(?:Main d'?oeuvre\s+HT|Total\s+MO|MO\s+HT|Forfait\s+MO)\s*[:\-]?\s*([\d\s.,]*\d)",
    re.IGNORECASE,
)
_LABOR_LINE = re.compile(
    r"(main d'?oeuvre|\bmo\b|forfait mo|d[eé]pose|repose|d[ée]montage|remontage"
    r"|remise en \w+|r[ée]glage|diagnostic|contr[ôo]le|peinture|peint\d*|t[oô]lerie"
    r"|carross|redressage|m[ée]canique|pose|\bT\d\b|ingr\.|ingr\.\(op\)|ingr\.\s*mv"
    r"|op[eé]rateur|pr[ée]paration\s*peinture|forfait|temps|travaux|postes)",
    re.IGNORECASE,
)
_HOURS_LINE = re.compile(
    r"(nbr|nb|nombre)\s*d'?heures?|temps\s*\(h\)|dur[ée]e|temps\s+estim[ée]",
    re.IGNORECASE,
)
_RATE_LINE = re.compile(
    r"(taux\s*horaire|p\.u\.\s*ht|prix\s*unitaire|tarif\s*horaire)", re.IGNORECASE
)
_INGREDIENT_WORD = re.compile(r"(ingr\.?|ingr[eé]dients)", re.IGNORECASE)
_HOUR_LIKE = re.compile(r"\b\d+[,.]?\d*\s*h", re.IGNORECASE)
_REDUCTION = re.compile(r"remise|r[ée]duc|rabais", re.IGNORECASE)
_LINE_NUMBERS = re.compile(r"-?\d+[\d.,]*\d*")


def aggregate_labor_info(text: str) -> LaborSummary:
    """Sum labor amounts scattered over a report.

    An explicit ``Main d'oeuvre HT`` / ``Total MO`` figure wins (the last
    one). Otherwise every labor-looking line contributes its last number,
    reductions are subtracted and ingredient lines without a duration are
    skipped.
    """
    if not isinstance(text, str):
        return LaborSummary(total=0.0)

    explicit = [parse_number(m.group(1)) for m in _MO_TOTAL.finditer(text)]
    if explicit:
        total = explicit[-1]
        total = 0.0 if math.isnan(total) else total
        return LaborSummary(total=total, zero_lines=1 if total == 0 else 0)

    total = 0.0
    hours = None
    rate = None
    zero_lines = 0
    for line in text.split("\n"):
        numbers = _LINE_NUMBERS.findall(line)
        if not numbers:
            continue
        if _INGREDIENT_WORD.search(line) and not _HOUR_LIKE.search(line):
            continue

        if _RATE_LINE.search(line):
            value = parse_number(numbers[-1])
            if not math.isnan(value):
                rate = value
        if _HOURS_LINE.search(line):
            value = parse_number(numbers[0])
            if not math.isnan(value):
                hours = value
        if _LABOR_LINE.search(line):
            value = parse_number(numbers[-1])
            if math.isnan(value):
                continue
            if _REDUCTION.search(line):
                total = safe_add(total, -abs(value))
            else:
                total = safe_add(total, value)
            if value == 0:
                zero_lines += 1

    if total == 0 and hours is not None and rate is not None:
        total = round_to_two(hours * rate)
    return LaborSummary(total=total, hours=hours, rate=rate, zero_lines=zero_lines)


# ── Paint ingredient heuristics ─────────────────────────────────────────

_INGREDIENT_SUMMARY = re.compile(
    r"^Ingr[eé]dients?\s+peinture\s*HT\s*[.:]*\s*(\d+(?:[ \t]?\d{3})*(?:[.,]\d+)?)",
    re.IGNORECASE,
)
_INGREDIENT_HT_TTC = re.compile(
    r"Ingr[eé]dients\s+peinture\s+HT\s+([\d,.]+)[\s€]+([\d,.]+)", re.IGNORECASE
)
_INGREDIENT_BCA = re.compile(r"ingr[eé]dients?\s+peinture\s*HT", re.IGNORECASE)
_INGREDIENT_HT = re.compile(
    r"\bIng(?:r(?:[ée]dients?)?)?\.?\s+peinture\s*(?:HT)?\s*[:\-]?\s*(\d+[,.]\d+)",
    re.IGNORECASE,
)
_INGREDIENT_WITH_HOURS = re.compile(
    r"ingr[eé]dients?[^\n]*\d+(?:[,.]\d+)?\s*h", re.IGNORECASE
)
_METAL_VERNIS = re.compile(
    r"ingr[eé]dients?[^\n]*(?:m[ée]tal|vernis)|m[ée]tal\s+vernis", re.IGNORECASE
)
_METAL_NUMBERS = re.compile(r"-?\d+[\d.,]*")


def _ingredient_line(amount: float) -> LaborLine:
    return LaborLine(type=INGREDIENT_LABEL, hours=1.0, rate=amount, total=amount)


def _from_summary(lines: list[str], tax_rate: float) -> LaborLine | None:
    for line in lines:
        match = _INGREDIENT_SUMMARY.match(line.strip())
        if match:
            amount = parse_number(match.group(1))
            if not math.isnan(amount):
                return _ingredient_line(amount)
    return None


def _from_ht_ttc_pair(text: str, tax_rate: float) -> LaborLine | None:
    match = _INGREDIENT_HT_TTC.search(text)
    if not match:
        return None
    amount = parse_number(match.group(1))
    if math.isnan(amount):
        ttc = parse_number(match.group(2))
        if math.isnan(ttc):
            return None
        amount = round_to_two(ttc / (1 + tax_rate))
    return _ingredient_line(amount)


def _from_hours_and_total(lines: list[str], tax_rate: float) -> LaborLine | None:
    for index, line in enumerate(lines):
        if not _INGREDIENT_BCA.search(line):
            continue
        numbers = _DECIMAL.findall(line)
        if len(numbers) < 2 and index + 1 < len(lines):
            following = _DECIMAL.findall(lines[index + 1])
            if len(following) >= 2:
                numbers = following
        if len(numbers) < 2:
            continue
        hours = parse_number(numbers[0])
        total = parse_number(numbers[-1])
        if not math.isnan(hours) and hours > 0 and not math.isnan(total):
            return LaborLine(
                type=INGREDIENT_LABEL,
                hours=hours,
                rate=round_to_two(total / hours),
                total=total,
            )
    return None


def _from_bare_ht(lines: list[str], tax_rate: float) -> LaborLine | None:
    for line in lines:
        match = _INGREDIENT_HT.search(line)
        # hours and rate columns follow: a table row, not an HT amount
        if not match or _DECIMAL.search(line, match.end()):
            continue
        amount = parse_number(match.group(1))
        if not math.isnan(amount):
            return _ingredient_line(amount)
    return None


def _from_metal_vernis(lines: list[str], tax_rate: float) -> LaborLine | None:
    for line in lines:
        if not _METAL_VERNIS.search(line):
            continue
        numbers = _METAL_NUMBERS.findall(line)
        if len(numbers) >= 3:
            hours, rate, total = (parse_number(n) for n in numbers[:3])
        elif len(numbers) == 2:
            hours = 1.0
            rate, total = (parse_number(n) for n in numbers)
        else:
            continue
        if math.isnan(total):
            continue
        return LaborLine(type=METAL_VERNIS_LABEL, hours=hours, rate=rate, total=total)
    return None


def detect_ingredient_labor(
    text: str, tax_rate: float = DEFAULT_SETTINGS.tax_rate
) -> tuple[str, LaborLine] | None:
    """Synthesize the single paint-ingredient labor line of a report.

    Heuristics are tried in a fixed order and the first one that fires wins.
    Returns ``(heuristic_name, line)`` or None.
    """
    if not isinstance(text, str):
        return None
    lines = text.split("\n")
    heuristics = (
        ("summary_line", lambda: _from_summary(lines, tax_rate)),
        ("ht_ttc_pair", lambda: _from_ht_ttc_pair(text, tax_rate)),
        ("hours_and_total", lambda: _from_hours_and_total(lines, tax_rate)),
        ("bare_ht", lambda: _from_bare_ht(lines, tax_rate)),
        ("metal_vernis", lambda: _from_metal_vernis(lines, tax_rate)),
    )
    for name, heuristic in heuristics:
        line = heuristic()
        if line is not None:
            logger.debug("Ingrédients en main d'oeuvre (%s): %s", name, line.total)
            return name, line
    return None


def ingredient_labor_mentioned(text: str, rows: list[LaborRow] | None = None) -> bool:
    """True when the report bills paint ingredients as labor."""
    if rows is None:
        rows = parse_labor_table(text)
    if any(re.search(r"ingr[eé]dients?", r.label, re.IGNORECASE) for r in rows):
        return True
    if _INGREDIENT_WITH_HOURS.search(text):
        return True
    detected = detect_ingredient_labor(text)
    return detected is not None and detected[0] != "metal_vernis"
