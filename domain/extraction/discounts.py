"""Discounts: tables carrying a remise column, and report-wide discounts.

Alliance Experts reports frame their parts list with ``!`` and a ``%Rem.``
column; other vendors print a header with a Remise / Réduc. / Rabais column
separated by ``!`` or by runs of spaces. Either way the net unit price is
computed here so downstream sanitizing keeps it as is.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
import re

from domain.models import PartCategory, PartLine
from domain.normalization import determine_category
from domain.numbers import format_number, parse_number, round_to_two

logger = logging.getLogger(__name__)

# ── Remise-column tables ────────────────────────────────────────────────

_ALLIANCE_HEADER = re.compile(r"%\s*Rem\.?", re.IGNORECASE)
_DISCOUNT_CELL = re.compile(r"%?\s*(?:rem(?:ise)?\.?|r[ée]duc(?:tion)?|rabais)", re.IGNORECASE)
_QTY_CELL = re.compile(r"qt[ée]|quant", re.IGNORECASE)
_DESC_CELL = re.compile(r"libell|design|descr", re.IGNORECASE)
_PRICE_CELL = re.compile(r"pu|p\.u\.|montant|mnt|prix", re.IGNORECASE)
_HT_CELL = re.compile(r"ht\b", re.IGNORECASE)
_NET_CELL = re.compile(r"net", re.IGNORECASE)
_SPACE_COLUMNS = re.compile(r"\s{2,}")


def _split_cells(line, delimiter):
    if delimiter == "!":
        return [cell.strip() for cell in line.split("!")]
    return _SPACE_COLUMNS.split(line.strip())


def _find_cell(cells, pattern) -> int:
    return next((i for i, cell in enumerate(cells) if pattern.search(cell)), -1)


def _remise_comment(remise, quantity) -> str:
    label = remise if "%" in remise else f"{remise} %"
    return f"Remise appliquée : {label} (quantité : {format_number(quantity)})"


def _discounted(price, remise):
    """Net unit price and comment for a remise cell, or (price, None)."""
    value = parse_number(remise)
    if math.isnan(value):
        return price, None
    return round_to_two(price * (1 - value / 100)), value


def _alliance_rows(lines):
    header = next(line for line in lines if _ALLIANCE_HEADER.search(line))
    has_net = bool(_NET_CELL.search(header))
    for line in lines:
        if "!" not in line:
            continue
        cols = _split_cells(line, "!")
        if len(cols) < 9:
            continue
        quantity = parse_number(cols[1])
        description = cols[2]
        price = parse_number(cols[5])
        if math.isnan(quantity) or math.isnan(price) or not description:
            continue

        remise = cols[7]
        net = parse_number(cols[8]) if has_net else math.nan
        unit = price if math.isnan(net) else net
        comment = None
        if math.isnan(net):
            unit, value = _discounted(price, remise)
            if value is not None:
                comment = _remise_comment(remise, quantity)
        yield PartLine(
            description=description,
            quantity=quantity,
            unit_price=unit,
            reference=cols[3] or None,
            operation=cols[4] or None,
            category=determine_category(description),
            comment=comment,
            remise=remise or None,
        )


def _generic_header(lines):
    for index, line in enumerate(lines):
        if not _DISCOUNT_CELL.search(line):
            continue
        delimiter = "!" if "!" in line else "space"
        cells = _split_cells(line, delimiter)
        columns = {
            "remise": _find_cell(cells, _DISCOUNT_CELL),
            "qty": _find_cell(cells, _QTY_CELL),
            "desc": _find_cell(cells, _DESC_CELL),
            "price": _find_cell(cells, _PRICE_CELL),
            "net": _find_cell(cells, _NET_CELL),
        }
        if columns["remise"] == -1:
            continue
        if columns["price"] == -1:
            columns["price"] = _find_cell(cells, _HT_CELL)
        if columns["desc"] != -1 and columns["price"] != -1:
            return index, delimiter, columns
    return None


def _generic_rows(lines):
    found = _generic_header(lines)
    if found is None:
        return
    header_index, delimiter, columns = found
    logger.debug("En-tête de remise trouvé ligne %d (%s)", header_index, delimiter)

    for line in lines[header_index + 1:]:
        if delimiter == "!" and "!" not in line:
            break
        if delimiter == "space" and not _SPACE_COLUMNS.search(line):
            if not line.strip():
                continue
            break
        cells = _split_cells(line, delimiter)
        if len(cells) <= max(columns.values()):
            continue

        description = cells[columns["desc"]]
        price = parse_number(cells[columns["price"]])
        quantity = parse_number(cells[columns["qty"]]) if columns["qty"] != -1 else 1.0
        if not description or math.isnan(price):
            continue

        remise = cells[columns["remise"]]
        unit = parse_number(cells[columns["net"]]) if columns["net"] != -1 else price
        comment = None
        if math.isnan(unit) or unit == price:
            discounted, value = _discounted(price, remise)
            if value is not None:
                unit = discounted
                comment = _remise_comment(remise, quantity)
        if math.isnan(unit):
            unit = price
        yield PartLine(
            description=description,
            quantity=1.0 if math.isnan(quantity) else quantity,
            unit_price=unit,
            category=determine_category(description),
            comment=comment,
            remise=remise or None,
        )


def read_remise_tables(lines) -> list[PartLine]:
    """Part lines of a table with a remise column, unit prices net of it."""
    if any(_ALLIANCE_HEADER.search(line) for line in lines):
        rows = _alliance_rows(lines)
    else:
        rows = _generic_rows(lines)

    parts = []
    for part in rows:
        duplicate = any(
            p.description == part.description and abs(p.unit_price - part.unit_price) < 0.01
            for p in parts
        )
        if not duplicate:
            parts.append(part)
    return parts


# ── Report-wide discount ────────────────────────────────────────────────

_KEYWORD = r"(remise|rabais|r[ée]duction|abattement)"
_PERCENT_DISCOUNT = re.compile(
    rf"{_KEYWORD}\s*:?[-\s]*(\d+(?:[,.]\d+)?)\s*%", re.IGNORECASE
)
_AMOUNT_DISCOUNT = re.compile(
    rf"{_KEYWORD}\s*:?[-\s]*(-?\d+(?:[,.]\d+)?)(?![\d.,]*\s*%)", re.IGNORECASE
)


def _read_discount(text, total_ht):
    percent = _PERCENT_DISCOUNT.search(text)
    if percent:
        if not total_ht:
            return None
        pct = parse_number(percent.group(2))
        if math.isnan(pct):
            return None
        return f"Remise {format_number(pct)}%", round_to_two(total_ht * pct / 100)

    amount = _AMOUNT_DISCOUNT.search(text)
    if amount:
        value = parse_number(amount.group(2))
        if not math.isnan(value):
            return amount.group(1).capitalize(), abs(value)
    return None


def extract_global_discount(context, document):
    doc = document.copy()
    found = _read_discount(context.text, doc.total_ht)
    if found is None or found[1] == 0:
        doc.total_ht_after_discount = doc.total_ht
        return doc

    label, value = found
    logger.debug("Remise globale: %s (%s)", label, value)
    doc.parts.append(PartLine(
        description=label,
        unit_price=-value,
        operation="D",
        category=PartCategory.DISCOUNT,
    ))
    if doc.total_ht is not None:
        doc.total_ht_after_discount = round_to_two(doc.total_ht - value)
    return doc
