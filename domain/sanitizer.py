"""Domain parts sanitizer — pure functions, zero external dependencies.

Turns raw part records (extractor output, imported spreadsheets, manual edits)
into billing lines: quantity defaulted, line discount applied once, net amount
honoured, VAT and paint-ingredient pseudo-lines removed.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping

from domain.models import PartLine
from domain.numbers import parse_number, round_to_two

NET_AMOUNT_FIELDS = (
    "montantHT",
    "montant_ht",
    "htNet",
    "ht_net",
    "montantHTNet",
    "net_ht",
    "netHT",
    "netHt",
    "htnet",
    "netht",
    "montant_net_ht",
    "vetusteDeduite",
)

_VAT_LABEL = re.compile(r"^tva\b", re.IGNORECASE)
_RATE_LABEL = re.compile(r"taux", re.IGNORECASE)
_PERCENT_ONLY = re.compile(r"^\d+[\d\s.,]*\s*%$")
_INGREDIENT_LABEL = re.compile(
    r"ingr[eé]dients?\s*(?:peinture|m[ée]tal\s*vernis)", re.IGNORECASE
)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_billable_label(label: str) -> bool:
    """False for empty, VAT, rate, bare-percentage and paint-ingredient labels."""
    text = label.strip()
    if not text:
        return False
    if _VAT_LABEL.search(text) or _RATE_LABEL.search(text):
        return False
    if _PERCENT_ONLY.match(text):
        return False
    return not _INGREDIENT_LABEL.search(text)


def apply_remise(price: float, remise) -> float:
    """Subtract a line discount: ``"10%"`` is a percentage, ``5`` an amount."""
    if _is_blank(remise):
        return price
    value = parse_number(remise)
    if math.isnan(value) or math.isnan(price):
        return price
    if isinstance(remise, str) and "%" in remise:
        return round_to_two(price * (1 - value / 100))
    return round_to_two(price - value)


def _net_amount(record: Mapping) -> float | None:
    for key in NET_AMOUNT_FIELDS:
        if key in record and not _is_blank(record[key]):
            value = parse_number(record[key])
            if not math.isnan(value):
                return value
    return None


def _as_record(part) -> dict:
    if isinstance(part, PartLine):
        return part.to_dict()
    if isinstance(part, Mapping):
        return dict(part)
    raise TypeError(f"Ligne de pièce invalide: {type(part).__name__}")


def sanitize_part(part) -> dict | None:
    """Sanitize one record; None when the line must be dropped."""
    record = _as_record(part)
    label = record.get("description") or record.get("label") or ""
    if not isinstance(label, str) or not is_billable_label(label):
        return None

    raw_qty = record.get("quantity", record.get("quantite"))
    quantity = 1.0 if _is_blank(raw_qty) else parse_number(raw_qty)
    if math.isnan(quantity):
        quantity = 1.0

    remise = record.get("remise")
    if record.get("price") is not None:
        unit_price = apply_remise(parse_number(record["price"]), remise)
    else:
        raw_unit = record.get("unitPrice", record.get("prixUnitaire"))
        unit_price = apply_remise(parse_number(raw_unit), remise)

    net = _net_amount(record)
    if net is not None:
        unit_price = net
    if math.isnan(unit_price):
        return None

    comment = record.get("comment")
    if _is_blank(comment) and not _is_blank(remise):
        comment = f"Importé avec remise {str(remise).strip()}"

    cleaned = {
        k: v
        for k, v in record.items()
        if k not in NET_AMOUNT_FIELDS
        and k not in ("remise", "label", "quantite", "prixUnitaire")
    }
    cleaned["description"] = label.strip()
    cleaned["quantity"] = quantity
    cleaned["unitPrice"] = unit_price
    cleaned["price"] = unit_price
    if comment:
        cleaned["comment"] = comment
    return cleaned


def sanitize_parts(parts: Iterable) -> list[dict]:
    """Return sanitized copies of ``parts``; inputs are never modified.

    Applying it to its own output returns an equal list.
    """
    if isinstance(parts, (str, bytes, Mapping)) or not isinstance(parts, Iterable):
        raise TypeError("sanitize_parts attend une liste de lignes")
    result = []
    for part in parts:
        cleaned = sanitize_part(part)
        if cleaned is not None:
            result.append(cleaned)
    return result
