"""Reconciliation stage: the last pass over an extracted document.

Fills totals that can be derived, settles the labor total and rate, drops
paint-ingredient parts already billed as labor, then records consistency
checks (``totalsVerified``, anomaly rules) without correcting anything.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict

from domain.anomaly_rules import (
    check_labor_coherence,
    check_lines_against_total,
    check_suspicious_decimals,
    check_totals_coherence,
)
from domain.invoice_calculator import calculate_lines_total_ht, recalculate_total
from domain.models import PartCategory, is_known
from domain.normalization import determine_category, is_ingredient_label
from domain.numbers import format_number, is_number, round_to_two, to_cents

logger = logging.getLogger(__name__)

TOTALS_MISMATCH = "totals mismatch"

_INGREDIENT_PART = re.compile(r"^ingr[eé]dients?\s+peinture$", re.IGNORECASE)
_PAINT_TO_PLAN = re.compile(r"Peinture\s+[aà]\s+pr[eé]voir", re.IGNORECASE)


def labor_details_total(details) -> float:
    """Sum of labor line totals; flat rates read twice count once."""
    cents = 0
    seen_flat_rates = set()
    for line in details:
        if not is_number(line.total):
            continue
        line_cents = to_cents(line.total)
        if determine_category(line.type) is PartCategory.FORFAIT:
            if line_cents in seen_flat_rates:
                continue
            seen_flat_rates.add(line_cents)
        cents += line_cents
    return cents / 100


def _settle_labor_total(doc):
    if doc.labor_total is not None:
        return
    if doc.labor_details:
        doc.labor_total = labor_details_total(doc.labor_details)
    elif is_known(doc.labor_hours) and is_known(doc.labor_rate):
        doc.labor_total = round_to_two(doc.labor_hours * doc.labor_rate)


def _drop_duplicate_ingredients(doc):
    amounts = [
        line.total
        for line in doc.labor_details
        if is_ingredient_label(line.type) and is_number(line.total)
    ]
    if not amounts:
        return
    kept = []
    removed = []
    for part in doc.parts:
        duplicate = (
            _INGREDIENT_PART.match(part.description.strip())
            and part.quantity == 1
            and any(abs(amount - part.unit_price) < 0.01 for amount in amounts)
        )
        if duplicate:
            removed.append(part.description)
        else:
            kept.append(part)
    if removed:
        logger.debug("Ingrédients déjà comptés en main d'oeuvre: %s", removed)
        doc.debug["removedIngredientParts"] = removed
    doc.parts = kept


def _settle_totals(doc, default_tax_rate):
    values = (doc.total_ht, doc.tax_amount, doc.total_ttc)
    if all(v is None for v in values):
        labor = [{"total": doc.labor_total}] if doc.labor_total else []
        tax_rate = doc.tax_rate if doc.tax_rate is not None else default_tax_rate
        totals = recalculate_total([p.to_dict() for p in doc.parts], labor, tax_rate)
        logger.debug("Totaux recalculés: %s", totals)
        doc.total_ht = totals.total_ht
        doc.tax_amount = totals.tva
        doc.total_ttc = totals.total_ttc
        doc.debug["totalsSource"] = "recalculated"
    elif sum(v is None for v in values) == 1:
        if doc.total_ht is None:
            doc.total_ht = round_to_two(doc.total_ttc - doc.tax_amount)
        elif doc.tax_amount is None:
            doc.tax_amount = round_to_two(doc.total_ttc - doc.total_ht)
        else:
            doc.total_ttc = round_to_two(doc.total_ht + doc.tax_amount)

    if doc.total_ht and doc.tax_amount is not None and doc.total_ht > 0:
        doc.tax_rate = round(doc.tax_amount / doc.total_ht, 4)


def _infer_labor_rate(doc):
    hours = doc.labor_hours
    if doc.labor_total is None or not is_known(hours) or not hours:
        return
    rate = doc.labor_rate
    if rate and is_known(rate) and abs(rate * hours - doc.labor_total) <= 0.01:
        return
    doc.labor_rate = round_to_two(doc.labor_total / hours)
    doc.debug.setdefault("adjustments", []).append(
        f"laborRate inferred {format_number(doc.labor_rate)}"
    )


def _verify_totals(doc, tolerance):
    if None in (doc.total_ht, doc.tax_amount, doc.total_ttc):
        return
    gap = to_cents(doc.total_ht) + to_cents(doc.tax_amount) - to_cents(doc.total_ttc)
    doc.totals_verified = abs(gap) <= to_cents(tolerance)
    if not doc.totals_verified:
        doc.add_warning(TOTALS_MISMATCH)


def _anomalies(doc, tolerance):
    amounts = [
        v for v in (doc.total_ht, doc.tax_amount, doc.total_ttc, doc.labor_total) if v is not None
    ]
    amounts.extend(p.unit_price for p in doc.parts)
    results = (
        check_totals_coherence(doc.total_ht, doc.tax_amount, doc.total_ttc, tolerance),
        check_labor_coherence(doc.labor_hours, doc.labor_rate, doc.labor_total),
        check_lines_against_total(doc.lines_total_ht, doc.total_ht),
        check_suspicious_decimals(amounts),
    )
    return [asdict(r) for r in results if not r.est_valide]


def reconcile(context, document):
    doc = document.copy()
    settings = context.settings

    for part in doc.parts:
        if part.category is None:
            part.category = determine_category(part.description)

    _settle_labor_total(doc)
    _drop_duplicate_ingredients(doc)
    _settle_totals(doc, settings.tax_rate)
    _infer_labor_rate(doc)

    lines_total = calculate_lines_total_ht(doc.parts)
    if not math.isnan(lines_total):
        doc.lines_total_ht = round_to_two(lines_total + (doc.labor_total or 0.0))

    doc.missing_terms = ["Peinture"] if _PAINT_TO_PLAN.search(context.text) else []
    _verify_totals(doc, settings.totals_tolerance)
    doc.debug["anomalies"] = _anomalies(doc, settings.totals_tolerance)
    doc.debug_summary = {
        "partCount": len(doc.parts),
        "totalsMatch": bool(doc.totals_verified),
    }
    return doc
