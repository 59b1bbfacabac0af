"""Structured extraction — OCR text of an expertise report to a Document.

The extraction is a fixed-order reduction over pure stages
``stage(context, document) -> document``. Earlier stages take precedence,
later ones only fill gaps, and reconciliation runs last.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
from functools import reduce

from domain.extraction.context import ExtractionContext
from domain.extraction.discounts import extract_global_discount
from domain.extraction.header import extract_report_header
from domain.extraction.identity import (
    extract_address,
    extract_client,
    extract_contact,
    extract_insurer,
)
from domain.extraction.labor import extract_ingredients_and_forfaits, extract_labor_totals
from domain.extraction.parts import extract_parts, extract_supplies
from domain.extraction.reconciliation import reconcile
from domain.extraction.totals import extract_totals
from domain.extraction.vehicle import extract_vehicle, extract_vehicle_identifiers
from domain.models import Document, ExtractionSettings

logger = logging.getLogger(__name__)

STAGES = (
    extract_report_header,
    extract_client,
    extract_contact,
    extract_address,
    extract_insurer,
    extract_vehicle,
    extract_vehicle_identifiers,
    extract_totals,
    extract_labor_totals,
    extract_parts,
    extract_ingredients_and_forfaits,
    extract_global_discount,
    extract_supplies,
    reconcile,
)


def _run_stage(context, document, stage):
    try:
        return stage(context, document)
    except (ValueError, TypeError, ArithmeticError) as exc:
        # a stage failing on odd text leaves the document as it was
        logger.warning("Étape %s en échec: %s", stage.__name__, exc, exc_info=True)
        failed = document.copy()
        failed.add_warning(f"stage failed: {stage.__name__}")
        return failed


def extract_structured_data(text, settings: ExtractionSettings | None = None) -> Document:
    """Run every extraction stage over ``text``.

    Never raises for malformed input: a non-string or empty text yields a
    Document holding defaults only.
    """
    context = ExtractionContext.from_text(text, settings)
    document = Document(tax_rate=context.settings.tax_rate)
    logger.debug(
        "Extraction de %d caractères (type %s)", len(context.text), context.report_type.value
    )
    return reduce(lambda doc, stage: _run_stage(context, doc, stage), STAGES, document)
