"""Parts stages.

``extract_parts`` runs complementary passes over the report, most precise
first: remise-column tables, the named-parts dictionary, tabulated rows,
quantity-first rows, the "Pièces par choc" section, the spare-parts total
line, then a global re-scan for named and critical parts. A part already
recorded with the same description and price is never added twice.

``extract_supplies`` adds the "Petites fournitures" line reports mention
without pricing it as a part.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
import re

from domain.extraction.discounts import read_remise_tables
from domain.models import PartCategory, PartLine
from domain.normalization import determine_category, normalize_description
from domain.numbers import parse_number

logger = logging.getLogger(__name__)

NAMED_PARTS = (
    "BRAS DE SUSPENSION A",
    "PNEUMATIQUE AV D D",
    "JANTE AV D D",
    "AGRAFES",
    "DECHETS",
    "MONTAGE EQUILIBRAGE",
    "SPOILER AR",
    "PEINTURE DEGRE 3 PAR",
    "REMISE EN ETAT PARE",
)

_TABULATED = re.compile(
    r"([A-ZÀ-ÿ \t\d-]+)[ \t]+(\d+(?:[,.]\d+)?)[ \t]*%?[ \t]+(\d+[,.]\d+)[ \t]+(\d+[,.]\d+)"
)
_QTY_FIRST = re.compile(r"(\d+)[ \t]+([A-ZÀ-ÿ \t-]+)[ \t]+(\d+[,.]\d+)[ \t]+(\d+[,.]\d+)")
# labor qualification codes share the column layout of part rows
_LABOR_CODE = re.compile(r"^(?:T\d|PEINT\d*|MO)$", re.IGNORECASE)

_PIECES_PAR_CHOC = re.compile(
    r"Pi[èe]ces\s+par\s+choc[\s\S]*?(?=Ingr[ée]dients|Forfait|Total)", re.IGNORECASE
)
_PIECES_ROW = re.compile(
    r"([A-ZÀ-ÿ \t\d-]+)[ \t]+(?:\d+[,.]\d+[ \t]*%[ \t]*)?(?:\d+[,.]\d+[ \t]*)?(\d+[,.]\d+)"
)
_SPARE_PARTS = re.compile(r"PI[ÈE]CES?\s+DE\s+RECHANGE[ \t]*([\d \t.,]*\d)", re.IGNORECASE)
_CRITICAL = re.compile(
    r"(BRAS[ \t]+DE[ \t]+SUSPENSION[A-Z \t]*|PNEUMATIQUE[A-Z \t\d]*|JANTE[A-Z \t\d]*)"
    r"[ \t]+(?:\d+[,.]\d+[ \t]*%[ \t]*)?(?:\d+[,.]\d+[ \t]*)?(\d+[,.]\d+)",
    re.IGNORECASE,
)
_PRICE = r"(\d+[,.]\d+)"
_LETTER = re.compile(r"[A-Za-zÀ-ÿ]")


def _same_part(doc, description, price) -> bool:
    return any(
        p.description == description and abs(p.unit_price - price) < 0.01 for p in doc.parts
    )


def _add_part(doc, description, price, quantity=1.0, operation="E", category=PartCategory.PIECE):
    doc.parts.append(PartLine(
        description=description,
        quantity=quantity,
        unit_price=price,
        operation=operation,
        category=category,
    ))


def _named_parts(text, doc):
    for name in NAMED_PARTS:
        escaped = re.escape(name)
        if not re.search(escaped, text, re.IGNORECASE):
            continue
        if any(name in p.description for p in doc.parts):
            continue
        match = re.search(rf"{escaped}[^\n]*?{_PRICE}", text, re.IGNORECASE) or re.search(
            rf"{escaped}[\s\S]{{0,50}}?{_PRICE}", text, re.IGNORECASE
        )
        price = parse_number(match.group(1)) if match else 0.0
        logger.debug("Pièce connue %s: %s", name, price)
        _add_part(doc, name, price)


def _row_parts(text, doc):
    for match in _TABULATED.finditer(text):
        description = normalize_description(match.group(1))
        lowered = description.lower()
        if not _LETTER.search(description) or "total" in lowered or "libellé" in lowered:
            continue
        if _LABOR_CODE.match(description):
            continue
        quantity = parse_number(match.group(2))
        unit_price = parse_number(match.group(3))
        if math.isnan(quantity) or quantity == 0:
            quantity = 1.0
        if _same_part(doc, description, unit_price):
            continue
        logger.debug("Ligne tabulée: %s x%s à %s", description, quantity, unit_price)
        _add_part(doc, description, unit_price, quantity, None, determine_category(description))

    for match in _QTY_FIRST.finditer(text):
        quantity = parse_number(match.group(1))
        description = normalize_description(match.group(2))
        unit_price = parse_number(match.group(3))
        if not description or "total" in description.lower():
            continue
        if _same_part(doc, description, unit_price):
            continue
        _add_part(doc, description, unit_price, quantity, None, determine_category(description))


def _pieces_par_choc(text, doc):
    section = _PIECES_PAR_CHOC.search(text)
    if not section:
        return
    for match in _PIECES_ROW.finditer(section.group(0)):
        description = normalize_description(match.group(1))
        price = parse_number(match.group(2))
        lowered = description.lower()
        if not _LETTER.search(description) or price <= 0:
            continue
        if any(word in lowered for word in ("libellé", "abatt", "remise")):
            continue
        if not _same_part(doc, description, price):
            _add_part(doc, description, price)


def _spare_parts_total(text, doc):
    match = _SPARE_PARTS.search(text)
    if not match or any(re.search("rechange", p.description, re.IGNORECASE) for p in doc.parts):
        return
    price = parse_number(match.group(1))
    if not math.isnan(price):
        _add_part(doc, "Pièces de rechange", price)


def _rescan(text, doc):
    for name in NAMED_PARTS:
        for match in re.finditer(rf"{re.escape(name)}[^\n]*?{_PRICE}", text, re.IGNORECASE):
            price = parse_number(match.group(1))
            if price > 0 and not _same_part(doc, name, price):
                _add_part(doc, name, price)

    for match in _CRITICAL.finditer(text):
        description = " ".join(match.group(1).split())
        price = parse_number(match.group(2))
        if price <= 0 or _same_part(doc, description, price):
            continue
        if any(p.description.startswith(description) and abs(p.unit_price - price) < 0.01
               for p in doc.parts):
            continue
        _add_part(doc, description, price)


def extract_parts(context, document):
    doc = document.copy()
    text = context.text

    for part in read_remise_tables(context.lines):
        if not _same_part(doc, part.description, part.unit_price):
            doc.parts.append(part)

    _named_parts(text, doc)
    _row_parts(text, doc)
    _pieces_par_choc(text, doc)
    _spare_parts_total(text, doc)
    _rescan(text, doc)
    logger.debug("%d ligne(s) de pièces", len(doc.parts))
    return doc


# ── Supplies ────────────────────────────────────────────────────────────

_SUPPLIES = re.compile(r"(?:petites\s+fournitures|fournitures\s+diverses)([^\n]*)", re.IGNORECASE)


def extract_supplies(context, document):
    doc = document.copy()
    match = _SUPPLIES.search(context.text)
    if not match:
        return doc
    if any(re.search("fournitures", p.description, re.IGNORECASE) for p in doc.parts):
        return doc

    amount = re.search(r"\d+(?:[,.]\d+)?", match.group(1))
    price = parse_number(amount.group(0)) if amount else context.settings.default_supplies_amount
    logger.debug("Petites fournitures: %s", price)
    doc.parts.append(PartLine(
        description="Petites fournitures",
        unit_price=price,
        operation="E",
        category=PartCategory.SUPPLY,
    ))
    return doc
