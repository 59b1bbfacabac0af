"""Labor stages.

``extract_labor_totals`` reads hours, rate and the labor total.
``extract_ingredients_and_forfaits`` turns paint-ingredient and flat-rate
lines into labor entries, merges the labor table and applies the default
hourly rate.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
import re

from domain.labor_table import INGREDIENT_LABEL, detect_ingredient_labor
from domain.models import UNSPECIFIED, LaborLine, PartCategory, PartLine, is_known
from domain.normalization import is_ingredient_label
from domain.numbers import parse_number, round_to_two, safe_add

logger = logging.getLogger(__name__)

AUTO_INTERPRETED = "auto_interpreted"

# ── Hours, rate and total ───────────────────────────────────────────────

_MO_TOTAL = re.compile(r"Main d['’ ]?\s?oeuvre\s+HT[ \t]*:?[ \t]*([\d \t.,]*\d)", re.IGNORECASE)
_ALPHA_EXPERT = re.compile(
    r"([A-Za-zÀ-ÿœŒ()'’\- \t]+?)[ \t]*[–-][ \t]*(\d+[,.]\d+)[ \t]*h[ \t]*[–-][ \t]*"
    r"(\d+[,.]\d+)[ \t]*(?:€|euros)?/?h?[ \t]*[–-][ \t]*(\d+[,.]\d+)",
    re.IGNORECASE,
)
_MO_PAR_CHOC = re.compile(
    r"Main\s+d['’]?oeuvre\s+par\s+choc[\s\S]*?(?=Pi[èe]ces|Ingr[ée]dients|Forfait|Total)",
    re.IGNORECASE,
)
_MO_ROW = re.compile(
    r"(T[ôo]lerie\s+T\d|Peinture\s+[A-Z]+\d?|T\d|PEINT\d)\s+(\d+[,.]\d+)\s+(\d+[,.]\d+)\s+(\d+[,.]\d+)",
    re.IGNORECASE,
)
_HOURS_LABEL = re.compile(r"Main\s+d['’]?oeuvre[ \t]*:?[ \t]*(\d+(?:[,.]\d+)?)[ \t]*h", re.IGNORECASE)
_SOUS_TOTAL_CHOC = re.compile(
    r"Sous\s+total\s+par\s+choc[\s\S]*?Main\s+d['’]?oeuvre[\s\S]*?(\d+[,.]\d+)", re.IGNORECASE
)
_HOURS_TIMES_RATE = re.compile(
    r"(\d+[,.]\d+)[ \t]*h(?:eures?)?\b[^\n]*?[x×][ \t]*(\d+[,.]\d+)", re.IGNORECASE
)
_ANY_HOURS = re.compile(r"(\d+[,.]\d+)[ \t]*h(?:eures?)?\b", re.IGNORECASE)


def _read_alpha_expert(context, doc):
    hours_sum = None
    for match in _ALPHA_EXPERT.finditer(context.text):
        label = match.group(1).strip()
        hours = parse_number(match.group(2))
        rate = parse_number(match.group(3))
        total = parse_number(match.group(4))
        hours_sum = safe_add(hours_sum, hours)
        if doc.labor_rate is None and not math.isnan(rate):
            doc.labor_rate = rate
        if is_ingredient_label(label) and not any(
            is_ingredient_label(line.type) for line in doc.labor_details
        ):
            doc.labor_details.append(LaborLine(type=label, hours=hours, rate=rate, total=total))
        logger.debug("Ligne AlphaExpert: %s %sh x %s = %s", label, hours, rate, total)
    if hours_sum is not None:
        doc.labor_hours = hours_sum
        doc.add_warning(AUTO_INTERPRETED)


def _read_mo_par_choc(context, doc):
    section = _MO_PAR_CHOC.search(context.text)
    if not section:
        return
    total_hours = 0.0
    total_mo = 0.0
    for match in _MO_ROW.finditer(section.group(0)):
        hours = parse_number(match.group(2))
        rate = parse_number(match.group(3))
        total = parse_number(match.group(4))
        total_hours = safe_add(total_hours, hours)
        total_mo = safe_add(total_mo, total)
        if doc.labor_rate is None and not math.isnan(rate) and rate > 0:
            doc.labor_rate = rate
    if total_hours > 0:
        doc.labor_hours = total_hours
        if doc.labor_total is None:
            doc.labor_total = total_mo


def _fallback_hours(context, doc):
    text = context.text
    labeled = _HOURS_LABEL.search(text)
    if labeled:
        doc.labor_hours = parse_number(labeled.group(1))
        return

    sous_total = _SOUS_TOTAL_CHOC.search(text)
    if sous_total:
        total_mo = parse_number(sous_total.group(1))
        if total_mo > 0 and doc.labor_rate:
            doc.labor_hours = round(total_mo / doc.labor_rate, 1)
        return

    generic = _HOURS_TIMES_RATE.search(text)
    if generic:
        doc.labor_hours = parse_number(generic.group(1))
        doc.labor_rate = parse_number(generic.group(2))
        return

    any_hours = _ANY_HOURS.search(text)
    if any_hours:
        hours = parse_number(any_hours.group(1))
        if hours > 0:
            doc.labor_hours = hours


def extract_labor_totals(context, document):
    doc = document.copy()
    explicit = _MO_TOTAL.search(context.text)
    if explicit:
        total = parse_number(explicit.group(1))
        if not math.isnan(total):
            doc.labor_total = total

    _read_alpha_expert(context, doc)
    _read_mo_par_choc(context, doc)
    if doc.labor_hours is None:
        _fallback_hours(context, doc)
    return doc


# ── Paint ingredients and flat rates ────────────────────────────────────

_INGREDIENT_SECTION = re.compile(r"Ingr[ée]dients\s+peintures[\s\S]*?(?=Forfait|Total)", re.IGNORECASE)
_INGREDIENT_ITEM = re.compile(
    r"(Opaque\s+vernis|[A-Za-zÀ-ÿ \t]+[ \t]+vernis|Base\s+mate|Teintes?[ \t]+[A-Za-zÀ-ÿ \t]*)"
    r"[ \t]+(?:\d+[,.]\d+)?[ \t]*(?:\d+[,.]\d+)?[ \t]+(\d+[,.]\d+)",
    re.IGNORECASE,
)
_OPAQUE_VERNIS = re.compile(r"Opaque\s+vernis[\s\S]*?(\d+[,.]\d+)", re.IGNORECASE)

_FORFAIT_SECTION = re.compile(r"Forfait\s+par\s+choc[\s\S]*?(?=Total|Main|\Z)", re.IGNORECASE)
_FORFAIT_ITEM = re.compile(
    r"(Autre\s+op[ée]ration\s+forfaitaire|Forfait[A-Za-zÀ-ÿ \t]*?)(?:[ \t]+-)?"
    r"(?:[ \t]+\d+(?:[,.]\d+)?[ \t]+)?[ \t]*(\d+[,.]\d+)",
    re.IGNORECASE,
)
_AUTRE_OPERATION = re.compile(r"Autre\s+op[ée]ration\s+forfaitaire[\s\S]*?(\d+[,.]\d+)", re.IGNORECASE)

_FORFAIT_SIMPLE = re.compile(
    r"FORFAIT(?:S|\(S\))?(?![a-zà-ÿ])[^\d\n]{0,20}(\d+(?:[,.]\d+)?)(?![ \t]*h)", re.IGNORECASE
)
_FORFAIT_WORD = re.compile(r"FORFAIT", re.IGNORECASE)
_FORFAIT_GENERIC = re.compile(r"Forfait(?!aire)", re.IGNORECASE)
_LOOSE_NUMBER = re.compile(r"-?\d+(?:[.,]\d+)?")
_DECIMAL = re.compile(r"\d+[,.]\d+")
_TOTAL_ROW = re.compile(r"\btotal", re.IGNORECASE)

_ALPHA_SIMPLE = re.compile(
    r"(INGR[ÉE]DIENTS?\s+PEINTURE|PEINTURE)[ \t]*[–-][ \t]*(\d+[,.]\d+)", re.IGNORECASE
)


def _has_labor(doc, pattern) -> bool:
    return any(re.search(pattern, line.type, re.IGNORECASE) for line in doc.labor_details)


def _add_ingredient_labor(context, doc):
    if any(is_ingredient_label(line.type) for line in doc.labor_details):
        return
    detected = detect_ingredient_labor(context.text, doc.tax_rate or context.settings.tax_rate)
    if detected is None:
        return
    heuristic, line = detected
    doc.labor_details.append(line)
    doc.debug.setdefault("ingredientHeuristic", heuristic)
    if doc.labor_total is not None:
        doc.labor_total = safe_add(doc.labor_total, line.total)


def _add_ingredient_section(context, doc):
    section = _INGREDIENT_SECTION.search(context.text)
    if not section or context.ingredient_labor:
        return
    for match in _INGREDIENT_ITEM.finditer(section.group(0)):
        description = match.group(1).strip()
        price = parse_number(match.group(2))
        if price > 0 and not doc.has_part(description, price):
            doc.parts.append(PartLine(
                description=description,
                unit_price=price,
                operation="P",
                category=PartCategory.PEINTURE,
            ))

    opaque = _OPAQUE_VERNIS.search(context.text)
    if opaque and not any("opaque vernis" in p.description.lower() for p in doc.parts):
        doc.parts.append(PartLine(
            description="Opaque vernis",
            unit_price=parse_number(opaque.group(1)),
            operation="P",
            category=PartCategory.PEINTURE,
        ))


def _flat_rate(label, total) -> LaborLine:
    return LaborLine(type=label, hours=UNSPECIFIED, rate=UNSPECIFIED, total=total)


def _add_forfait_section(context, doc):
    section = _FORFAIT_SECTION.search(context.text)
    if not section:
        return
    for match in _FORFAIT_ITEM.finditer(section.group(0)):
        label = " ".join(match.group(1).split())
        price = parse_number(match.group(2))
        if price > 0 and not _has_labor(doc, rf"^{re.escape(label)}$"):
            doc.labor_details.append(_flat_rate(label, price))

    if not _has_labor(doc, r"autre\s+op[ée]ration\s+forfaitaire"):
        autre = _AUTRE_OPERATION.search(context.text)
        if autre:
            doc.labor_details.append(
                _flat_rate("Autre opération forfaitaire", parse_number(autre.group(1)))
            )


def _add_simple_forfait(context, doc):
    if _has_labor(doc, "FORFAIT"):
        return
    match = _FORFAIT_SIMPLE.search(context.text.replace("\n", " "))
    amount = parse_number(match.group(1)) if match else math.nan
    if match is None:
        for line in context.lines:
            if not _FORFAIT_WORD.search(line):
                continue
            numbers = _LOOSE_NUMBER.findall(line)
            if len(numbers) == 1:
                amount = parse_number(numbers[0])
                break
    if not math.isnan(amount):
        logger.debug("Forfait simple: %s", amount)
        doc.labor_details.append(_flat_rate("FORFAITS", amount))


def _add_alpha_simple_amounts(context, doc):
    found = False
    for match in _ALPHA_SIMPLE.finditer(context.text):
        found = True
        label = match.group(1).strip()
        amount = parse_number(match.group(2))
        if context.ingredient_labor or doc.has_part(label):
            continue
        doc.parts.append(PartLine(
            description=label,
            unit_price=amount,
            operation="P",
            category=PartCategory.PEINTURE,
        ))
    if found:
        doc.add_warning(AUTO_INTERPRETED)


def _is_duplicate_row(doc, label, total) -> bool:
    for line in doc.labor_details:
        # one ingredient line per document, whatever its amount
        if is_ingredient_label(line.type) and is_ingredient_label(label):
            return True
        if line.type.lower() == label.lower() and abs(line.total - total) <= 0.01:
            return True
    return False


def _replace_synthesized_ingredient(doc, line) -> bool:
    """Swap the heuristic ingredient line for a table row carrying hours x rate."""
    if doc.debug.get("ingredientHeuristic") in (None, "labor_table"):
        return False
    if not is_ingredient_label(line.type):
        return False
    for index, existing in enumerate(doc.labor_details):
        if not is_ingredient_label(existing.type):
            continue
        doc.labor_details[index] = line
        if doc.labor_total is not None:
            doc.labor_total = round_to_two(doc.labor_total - existing.total + line.total)
        doc.debug["ingredientHeuristic"] = "labor_table"
        logger.debug("Ingrédients: ligne %s remplacée par %s", existing.total, line.total)
        return True
    return False


def _merge_labor_table(context, doc):
    merged = []
    for row in context.labor_rows:
        if math.isnan(row.montant_ht) or _TOTAL_ROW.search(row.label):
            continue
        line = LaborLine(type=row.label, hours=row.hours, rate=row.rate, total=row.montant_ht)
        if _replace_synthesized_ingredient(doc, line):
            merged.append(line)
            continue
        if _is_duplicate_row(doc, row.label, row.montant_ht):
            continue
        doc.labor_details.append(line)
        merged.append(line)
    if not merged:
        return

    if doc.labor_hours is None:
        doc.labor_hours = round_to_two(sum(l.hours for l in merged if is_known(l.hours)))
    if doc.labor_rate is None:
        doc.labor_rate = next((l.rate for l in merged if is_known(l.rate)), None)


def _add_forfaits_three_numbers(context, doc):
    if _has_labor(doc, "FORFAIT"):
        return
    for line in context.lines:
        if not _FORFAIT_WORD.search(line):
            continue
        numbers = [parse_number(n) for n in _LOOSE_NUMBER.findall(line)]
        if len(numbers) < 3:
            continue
        hours, rate, total = numbers[:3]
        label = re.sub(r"\d.*$", "", line).strip() or "FORFAITS"
        doc.labor_details.append(LaborLine(type=label, hours=hours, rate=rate, total=total))
        if doc.labor_hours is None:
            doc.labor_hours = hours
        if doc.labor_rate is None:
            doc.labor_rate = rate
        if doc.labor_total is None:
            doc.labor_total = total
        return


def _add_generic_forfait(context, doc):
    if _has_labor(doc, r"^Forfait$"):
        return
    for line in context.lines:
        if not _FORFAIT_GENERIC.search(line):
            continue
        amount = _DECIMAL.search(line)
        if amount:
            doc.labor_details.append(_flat_rate("Forfait", parse_number(amount.group(0))))
            return


def extract_ingredients_and_forfaits(context, document):
    doc = document.copy()
    _add_ingredient_labor(context, doc)
    _add_ingredient_section(context, doc)
    _add_forfait_section(context, doc)
    _add_simple_forfait(context, doc)
    _add_alpha_simple_amounts(context, doc)
    _merge_labor_table(context, doc)
    _add_forfaits_three_numbers(context, doc)
    _add_generic_forfait(context, doc)

    if not doc.labor_rate:
        doc.labor_rate = context.settings.default_labor_rate
        logger.debug("Taux horaire par défaut: %s", doc.labor_rate)
    return doc


__all__ = [
    "AUTO_INTERPRETED",
    "INGREDIENT_LABEL",
    "extract_ingredients_and_forfaits",
    "extract_labor_totals",
]
