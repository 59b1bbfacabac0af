"""Domain invoice arithmetic — pure functions, zero external dependencies.

All money is accumulated in integer cents and converted back to 2-decimal
floats only when results are returned. Inputs are never modified.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence

from domain.models import (
    DEFAULT_SETTINGS,
    InvoiceTotals,
    RecalculatedTotals,
)
from domain.numbers import format_number, is_number, parse_number, to_cents
from domain.sanitizer import sanitize_parts

logger = logging.getLogger(__name__)


def normalize_tax_rate(tax_rate) -> float:
    """Accept ``0.2`` or ``20``; NaN when unusable."""
    rate = parse_number(tax_rate)
    if math.isnan(rate):
        return rate
    return rate / 100 if rate > 1 else rate


def _require_list(value, name: str) -> None:
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} doit être une liste, reçu {type(value).__name__}")


class InvoiceCalculator:
    """Cent-accurate invoice totals for dashboard line items."""

    PRECISION = 100

    def __init__(self, tax_rate: float = DEFAULT_SETTINGS.tax_rate):
        rate = normalize_tax_rate(tax_rate)
        self.tax_rate = 0.0 if math.isnan(rate) else rate

    @staticmethod
    def is_valid_item(item: Mapping) -> bool:
        if not isinstance(item, Mapping):
            return False
        price = item.get("price")
        quantity = item.get("quantity")
        return (
            is_number(price)
            and price >= 0
            and is_number(quantity)
            and quantity > 0
            and not item.get("_deleted", False)
            and item.get("id") is not None
        )

    def calculate_invoice_total(
        self, items: Sequence[Mapping], tax_rate: float | None = None
    ) -> InvoiceTotals:
        """Subtotal, tax and total of the valid items, in integer cents."""
        _require_list(items, "items")
        rate = self.tax_rate if tax_rate is None else normalize_tax_rate(tax_rate)
        if math.isnan(rate):
            rate = 0.0

        valid = [item for item in items if self.is_valid_item(item)]
        subtotal_cents = sum(to_cents(item["price"] * item["quantity"]) for item in valid)
        tax_cents = to_cents(subtotal_cents * rate / self.PRECISION)
        total_cents = subtotal_cents + tax_cents

        if len(valid) != len(items):
            logger.debug("%d ligne(s) ignorée(s) sur %d", len(items) - len(valid), len(items))

        return InvoiceTotals(
            subtotal=subtotal_cents / self.PRECISION,
            tax_amount=tax_cents / self.PRECISION,
            total=total_cents / self.PRECISION,
            item_count=len(valid),
        )


def calculate_invoice_total(
    items: Sequence[Mapping], tax_rate: float = DEFAULT_SETTINGS.tax_rate
) -> InvoiceTotals:
    return InvoiceCalculator(tax_rate).calculate_invoice_total(items)


# ── Parts + labor recalculation ─────────────────────────────────────────


def _clamped_discount(value) -> float:
    discount = parse_number(value)
    if math.isnan(discount):
        return 0.0
    return min(max(discount, 0.0), 100.0)


def _item_line_cents(item: Mapping) -> int | None:
    quantity = parse_number(item.get("quantity"))
    unit = parse_number(item.get("unitPrice"))
    if math.isnan(unit):
        unit = parse_number(item.get("price"))
    if math.isnan(quantity) or math.isnan(unit):
        return None
    discount = _clamped_discount(item.get("discount"))
    return to_cents(unit * quantity * (1 - discount / 100))


def _labor_line_cents(entry: Mapping) -> int | None:
    hours = parse_number(entry.get("hours"))
    rate = parse_number(entry.get("rate"))
    total = parse_number(entry.get("total"))
    discount = parse_number(entry.get("remise", entry.get("discount")))

    has_hours = not math.isnan(hours) and hours > 0 and not math.isnan(rate)
    has_total = not math.isnan(total) and total != 0
    if not (has_hours or has_total):
        return None

    if has_total and (math.isnan(hours) or hours == 0):
        cents = to_cents(total)
    else:
        cents = to_cents(hours * rate)
    if not math.isnan(discount):
        cents -= to_cents(discount)
    return cents


def recalculate_total(items, labor_entries, tax_rate) -> RecalculatedTotals:
    """HT / TVA / TTC from sanitized parts and labor entries.

    ``tax_rate`` may be a fraction (0.2) or a percentage (20). Non-list inputs
    or an unusable rate give all-zero totals.
    """
    rate = normalize_tax_rate(tax_rate)
    if (
        not isinstance(items, (list, tuple))
        or not isinstance(labor_entries, (list, tuple))
        or math.isnan(rate)
    ):
        return RecalculatedTotals(total_ht=0.0, tva=0.0, total_ttc=0.0)

    items_cents = 0
    for item in sanitize_parts(items):
        cents = _item_line_cents(item)
        if cents is not None:
            items_cents += cents

    labor_cents = 0
    for entry in labor_entries:
        if not isinstance(entry, Mapping):
            continue
        cents = _labor_line_cents(entry)
        if cents is not None:
            labor_cents += cents

    ht_cents = items_cents + labor_cents
    tva_cents = to_cents(ht_cents * rate / 100)
    return RecalculatedTotals(
        total_ht=ht_cents / 100,
        tva=tva_cents / 100,
        total_ttc=(ht_cents + tva_cents) / 100,
    )


def calculate_totals(items, labor_entries, tax_rate) -> dict:
    """Same as ``recalculate_total`` with invoice field names."""
    totals = recalculate_total(items, labor_entries, tax_rate)
    return {
        "subtotal": totals.total_ht,
        "tax": totals.tva,
        "total": totals.total_ttc,
    }


# ── Consistency helpers ─────────────────────────────────────────────────


def _first_present(record: Mapping, keys: Sequence[str], default=None):
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def calculate_lines_total_ht(lines) -> float:
    """Sum of quantity x price over report lines, tolerant of field names."""
    cents = 0
    for line in lines or []:
        if not isinstance(line, Mapping):
            line = line.to_dict()
        quantity = parse_number(_first_present(line, ("quantite", "quantity"), 1))
        price = parse_number(
            _first_present(line, ("montantHT", "unitPrice", "prixUnitaire", "price"))
        )
        if math.isnan(quantity) or math.isnan(price):
            continue
        cents += to_cents(quantity * price)
    return cents / 100


def check_total_consistency(report_total_ht, lines, tolerance: float = 0.01) -> bool:
    """True when the lines add up to the reported HT total."""
    expected = parse_number(report_total_ht)
    if math.isnan(expected):
        return False
    return abs(calculate_lines_total_ht(lines) - expected) <= tolerance


def _line_price(line: Mapping) -> float:
    return parse_number(_first_present(line, ("unitPrice", "price")))


def find_mismatch_line(expected, actual) -> str | None:
    """First expected line missing from ``actual`` or priced differently.

    Returns ``"<description> <price>"`` (just the description when the
    expected price is unreadable) or None when everything matches.
    """
    for line in expected or []:
        description = line.get("description")
        price = _line_price(line)
        label = description if math.isnan(price) else f"{description} {format_number(price)}"
        match = next((p for p in actual or [] if p.get("description") == description), None)
        if match is None:
            return label
        other = _line_price(match)
        if not math.isnan(price) and not math.isnan(other) and abs(price - other) > 0.01:
            return label
    return None


_EXPORT_FIELDS = (
    ("Total HT", "totalHT", "subtotal"),
    ("TVA", "taxAmount", "tax_amount"),
    ("Total TTC", "totalTTC", "total"),
    ("Heures MO", "laborHours", "labor_hours"),
    ("Taux MO", "laborRate", "labor_rate"),
)


def _mentions(parts, pattern: str, negative_counts: bool = False) -> bool:
    for part in parts or []:
        if pattern in str(part.get("description") or "").lower():
            return True
        if negative_counts and parse_number(part.get("unitPrice")) < 0:
            return True
    return False


def find_export_discrepancies(extracted: Mapping, invoice: Mapping) -> list[str]:
    """Labels of values that differ between an extraction and an exported invoice."""
    if not extracted or not invoice:
        return []

    discrepancies = []
    for label, extracted_key, invoice_key in _EXPORT_FIELDS:
        if extracted.get(extracted_key) is None:
            continue
        left = parse_number(extracted[extracted_key])
        right = parse_number(invoice.get(invoice_key))
        if math.isnan(left) or math.isnan(right) or abs(left - right) > 0.01:
            discrepancies.append(label)

    extracted_parts = extracted.get("parts")
    invoice_parts = invoice.get("parts")
    if _mentions(extracted_parts, "fourniture") and not _mentions(invoice_parts, "fourniture"):
        discrepancies.append("Petites fournitures")
    if _mentions(extracted_parts, "remise", True) and not _mentions(invoice_parts, "remise", True):
        discrepancies.append("Remise")

    extracted_number = (extracted.get("report") or {}).get("reportNumber")
    invoice_number = (invoice.get("report") or {}).get("reportNumber")
    if extracted_number and not invoice_number:
        discrepancies.append("Numéro rapport")
    return discrepancies
