"""Totals stage: HT / TVA / TTC read as a ranked list of candidates.

Reports print their totals several times (general total block, labeled
lines, wear-deducted section, sub-total block). Each reading becomes a
``TotalsCandidate``; the first one whose HT + TVA matches TTC wins.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
import math
import re

from domain.extraction.context import AMOUNT
from domain.models import TotalsCandidate
from domain.numbers import parse_number, round_to_two

logger = logging.getLogger(__name__)

_GAP = r"[\s\S]*?"
_THREE_AMOUNTS = rf"{_GAP}({AMOUNT}){_GAP}({AMOUNT}){_GAP}({AMOUNT})"

_TOTAL_GENERAL = re.compile(
    rf"(?<!sous )total\s+g[ée]n[ée]ral{_THREE_AMOUNTS}", re.IGNORECASE
)
_VETUSTE = re.compile(rf"v[ée]tust[ée]{_GAP}d[ée]duite{_THREE_AMOUNTS}", re.IGNORECASE)
_SOUS_TOTAL = re.compile(rf"sous\s+total\s+g[ée]n[ée]ral{_THREE_AMOUNTS}", re.IGNORECASE)

_HT_LABELS = (
    re.compile(rf"Total\s+H\.?T\.?[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"\bHT[ \t]+({AMOUNT})", re.IGNORECASE),
)
_TVA_WITH_RATE = re.compile(
    rf"\bTVA[ \t]+(\d+(?:[.,]\d+)?)[ \t]*%[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE
)
_TVA_LABELS = (
    re.compile(rf"Montant\s+TVA[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"\bTVA[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE),
)
_TTC_LABELS = (
    re.compile(rf"Total\s+T\.?T\.?C\.?[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"PRICE\s+TTC[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"\bTTC[ \t]*:?[ \t]*({AMOUNT})", re.IGNORECASE),
)


def _amount(raw) -> float | None:
    value = parse_number(raw)
    return None if math.isnan(value) else value


def _first_labeled(patterns, text) -> float | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return _amount(match.group(1))
    return None


def _block_candidates(source, pattern, text, confidence):
    match = pattern.search(text)
    if not match:
        return []
    first, second, third = (_amount(match.group(i)) for i in (1, 2, 3))
    natural = TotalsCandidate(
        source=source, total_ht=first, tva=second, total_ttc=third, confidence=confidence
    )
    permuted = TotalsCandidate(
        source=f"{source}_permuted",
        total_ht=first,
        tva=third,
        total_ttc=second,
        confidence=confidence - 0.1,
    )
    return [natural, permuted]


def _labeled_candidate(text) -> TotalsCandidate:
    tax_rate = None
    tva = None
    with_rate = _TVA_WITH_RATE.search(text)
    if with_rate:
        rate = _amount(with_rate.group(1))
        tax_rate = None if rate is None else rate / 100
        tva = _amount(with_rate.group(2))
    if tva is None:
        tva = _first_labeled(_TVA_LABELS, text)
    return TotalsCandidate(
        source="labels",
        total_ht=_first_labeled(_HT_LABELS, text),
        tva=tva,
        total_ttc=_first_labeled(_TTC_LABELS, text),
        confidence=0.7,
        tax_rate=tax_rate,
    )


def complete_candidate(candidate: TotalsCandidate) -> TotalsCandidate:
    """Derive the one missing value of a candidate from the other two."""
    ht, tva, ttc = candidate.total_ht, candidate.tva, candidate.total_ttc
    missing = [v is None for v in (ht, tva, ttc)]
    if missing.count(True) != 1:
        return candidate
    if ht is None:
        ht = round_to_two(ttc - tva)
    elif tva is None:
        tva = round_to_two(ttc - ht)
    else:
        ttc = round_to_two(ht + tva)
    return TotalsCandidate(
        source=candidate.source,
        total_ht=ht,
        tva=tva,
        total_ttc=ttc,
        confidence=candidate.confidence,
        tax_rate=candidate.tax_rate,
    )


def totals_candidates(text) -> list[TotalsCandidate]:
    """All readings of the totals section, most trusted first."""
    candidates = _block_candidates("total_general", _TOTAL_GENERAL, text, 0.9)
    candidates.append(_labeled_candidate(text))
    candidates.extend(_block_candidates("vetuste_deduite", _VETUSTE, text, 0.6))
    candidates.extend(_block_candidates("sous_total_general", _SOUS_TOTAL, text, 0.5))
    return [c for c in candidates if c.has_values]


def select_totals(candidates, tolerance=1.0) -> TotalsCandidate | None:
    """Most confident consistent candidate, else the most confident one.

    Ties keep extractor order.
    """
    ranked = sorted(candidates, key=lambda c: c.confidence, reverse=True)
    for candidate in ranked:
        completed = complete_candidate(candidate)
        if completed.is_consistent(tolerance):
            return completed
    return ranked[0] if ranked else None


def extract_totals(context, document):
    doc = document.copy()
    candidates = totals_candidates(context.text)
    chosen = select_totals(candidates, context.settings.candidate_tolerance)
    doc.debug["totalsCandidates"] = [c.source for c in candidates]
    if chosen is None:
        return doc

    logger.debug(
        "Totaux retenus (%s): HT=%s TVA=%s TTC=%s",
        chosen.source, chosen.total_ht, chosen.tva, chosen.total_ttc,
    )
    doc.debug["totalsSource"] = chosen.source
    doc.total_ht = chosen.total_ht
    doc.tax_amount = chosen.tva
    doc.total_ttc = chosen.total_ttc
    if chosen.tax_rate is not None:
        doc.tax_rate = chosen.tax_rate
    return doc
