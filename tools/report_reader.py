#!/usr/bin/env python3
"""
report_reader.py — Lecture d'un rapport d'expertise (PDF ou texte OCR) vers JSON.

Usage:
    python tools/report_reader.py <rapport.pdf|rapport.txt> [--output json|text]
        [--strategy auto|text|ocr] [--config config.yaml]
        [--tracabilite tracabilite.json] [--verbose]

Stratégies:
    auto  — pdfplumber, puis OCR Tesseract si le texte est trop court ou sans pièces
    text  — pdfplumber uniquement
    ocr   — OCR Tesseract uniquement
"""

import json
import logging
import math
import os
import sys

from domain.anomaly_rules import check_totals_coherence, check_tracabilite_total
from domain.extraction.pipeline import extract_structured_data
from domain.extraction.strategy_selector import (
    REQUESTED_STRATEGIES,
    ExtractionStrategy,
    build_fallback_chain,
    needs_ocr_retry,
    select_strategy,
)
from domain.models import Document, ExtractionSettings
from domain.numbers import parse_number, round_to_two
from domain.ports import join_pages
from tools.adapters import PdfplumberExtractor, TesseractOCR
from tools.config import ConfigError, load_settings

logger = logging.getLogger(__name__)

TRACABILITE_TOTAL_KEYS = (
    "totalTTC",
    "montantTTC",
    "total",
    "ttc",
    "totalFacture",
    "invoiceTotal",
    "factureTotal",
)

TOTALS_INCOHERENT = "totals incoherent"
TRACABILITE_MISMATCH = "tracabilite mismatch"


class ReportReadError(Exception):
    """The report could not be read by any strategy."""


# ── Extraction ──────────────────────────────────────────────────────────


def _attempt(strategy, pdf_path, settings, pdf_extractor, ocr):
    """Run one strategy. Returns (port result, Document or None)."""
    if strategy == ExtractionStrategy.OCR_TESSERACT:
        result = ocr.extract_text_ocr(pdf_path, lang=settings.ocr_lang)
    else:
        result = pdf_extractor.extract_text(pdf_path)
    if not result.get("success"):
        return result, None
    return result, extract_structured_data(join_pages(result), settings)


def _is_better(candidate, current) -> bool:
    if current is None:
        return True
    (cand_result, cand_doc), (cur_result, cur_doc) = candidate, current
    if len(cand_doc.parts) != len(cur_doc.parts):
        return len(cand_doc.parts) > len(cur_doc.parts)
    return len(join_pages(cand_result)) > len(join_pages(cur_result))


def _read_pdf(pdf_path, settings, strategy, pdf_extractor, ocr):
    threshold = settings.ocr_min_chars
    requested = REQUESTED_STRATEGIES[strategy]
    errors = []
    best = None

    if requested is not None:
        chain = [requested]
        first = None
    else:
        first = _attempt(ExtractionStrategy.PDFPLUMBER_TEXT, pdf_path, settings, pdf_extractor, ocr)
        chars = len(join_pages(first[0])) if first[1] is not None else 0
        if first[1] is None:
            errors.append(f"{ExtractionStrategy.PDFPLUMBER_TEXT.value}: {first[0].get('error', 'échec')}")
        else:
            best = first
        chain = build_fallback_chain(select_strategy(chars, threshold))

    for current in chain:
        if first is not None and current == ExtractionStrategy.PDFPLUMBER_TEXT:
            result, document = first
        else:
            result, document = _attempt(current, pdf_path, settings, pdf_extractor, ocr)

        if document is None:
            errors.append(f"{current.value}: {result.get('error', 'échec')}")
            continue
        if _is_better((result, document), best):
            best = (result, document)

        chars = len(join_pages(result))
        if requested is None and needs_ocr_retry(chars, len(document.parts), threshold):
            logger.info(
                "%s: texte insuffisant (%d caractères, %d pièces) avec %s",
                pdf_path, chars, len(document.parts), current.value,
            )
            continue
        break

    if best is None:
        raise ReportReadError(f"Aucune stratégie n'a abouti pour {pdf_path}: {'; '.join(errors)}")
    return best


def _attach_summary(document: Document, text: str, pages: int, method: str) -> Document:
    doc = document.copy()
    coherence = check_totals_coherence(doc.total_ht, doc.tax_amount, doc.total_ttc)
    if not coherence.est_valide:
        doc.add_warning(TOTALS_INCOHERENT)
    doc.summary = {
        "pagesScanned": pages,
        "ocrMethod": method,
        "charsExtracted": len(text),
        "totalsFound": bool(doc.total_ht and doc.tax_amount and doc.total_ttc),
        "warnings": list(doc.warnings),
    }
    return doc


def read_report(
    path: str,
    settings: ExtractionSettings | None = None,
    strategy: str = "auto",
    pdf_extractor=None,
    ocr=None,
) -> Document:
    """Read an expertise report file and return its structured Document.

    ``.txt`` files hold already-extracted OCR text; anything else is read as
    a PDF with the requested strategy (see module docstring).
    """
    settings = settings or ExtractionSettings()
    if strategy not in REQUESTED_STRATEGIES:
        raise ReportReadError(f"Stratégie inconnue: {strategy}")
    if not os.path.exists(path):
        raise ReportReadError(f"Fichier non trouvé: {path}")

    if path.lower().endswith(".txt"):
        with open(path, encoding="utf-8") as f:
            text = f.read()
        document = extract_structured_data(text, settings)
        return _attach_summary(
            document, text, text.count("\f") + 1, ExtractionStrategy.PLAIN_TEXT.value
        )

    result, document = _read_pdf(
        path,
        settings,
        strategy,
        pdf_extractor or PdfplumberExtractor(),
        ocr or TesseractOCR(),
    )
    return _attach_summary(
        document, join_pages(result), result.get("total_pages", 0), result.get("strategy")
    )


# ── Tracabilite ─────────────────────────────────────────────────────────


def manual_total(tracabilite) -> float | None:
    """First parseable manual invoice total of a tracabilite record."""
    if not isinstance(tracabilite, dict):
        return None
    for key in TRACABILITE_TOTAL_KEYS:
        if key in tracabilite:
            value = parse_number(tracabilite[key])
            if not math.isnan(value):
                return value
    return None


def compare_tracabilite(
    document: Document, tracabilite: dict, settings: ExtractionSettings | None = None
) -> Document:
    """Compare a manually entered invoice total with the extracted TTC."""
    settings = settings or ExtractionSettings()
    doc = document.copy()
    doc.report.tracabilite = dict(tracabilite)

    manual = manual_total(tracabilite)
    if manual is None or doc.total_ttc is None:
        return doc

    doc.debug["diff"] = {
        "expectedTTC": doc.total_ttc,
        "actualInvoice": manual,
        "delta": round_to_two(manual - doc.total_ttc),
    }
    check = check_tracabilite_total(manual, doc.total_ttc, settings.tracabilite_tolerance)
    if not check.est_valide:
        logger.warning("Tracabilite: %s", check.description)
        doc.debug["anomalyDetected"] = True
        doc.add_warning(TRACABILITE_MISMATCH)
        if doc.summary:
            doc.summary["warnings"] = list(doc.warnings)
    return doc


# ── CLI ─────────────────────────────────────────────────────────────────


def _format_text(data: dict) -> str:
    summary = data.get("summary", {})
    lines = [
        f"Type de rapport : {data['report']['reportType']}",
        f"Méthode : {summary.get('ocrMethod')} ({summary.get('pagesScanned')} page(s), "
        f"{summary.get('charsExtracted')} caractères)",
        f"Total HT : {data.get('totalHT')}",
        f"TVA : {data.get('taxAmount')}",
        f"Total TTC : {data.get('totalTTC')}",
        f"Main d'oeuvre : {data.get('laborTotal')}",
        f"Pièces : {len(data.get('parts', []))}",
    ]
    for part in data.get("parts", []):
        lines.append(
            f"  - {part['description']} x{part['quantity']} @ {part['unitPrice']}"
        )
    if data.get("warnings"):
        lines.append(f"Alertes : {', '.join(data['warnings'])}")
    return "\n".join(lines)


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="Extraction structurée d'un rapport d'expertise")
    parser.add_argument("path", help="Chemin vers le rapport (PDF ou texte OCR)")
    parser.add_argument("--output", choices=["json", "text"], default="json", help="Format de sortie")
    parser.add_argument("--strategy", choices=sorted(REQUESTED_STRATEGIES), default="auto", help="Stratégie d'extraction")
    parser.add_argument("--config", default=None, help="Fichier de configuration YAML")
    parser.add_argument("--tracabilite", default=None, help="JSON de tracabilite (total saisi)")
    parser.add_argument("--verbose", action="store_true", help="Logs détaillés")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
        document = read_report(args.path, settings, args.strategy)
        if args.tracabilite:
            with open(args.tracabilite, encoding="utf-8") as f:
                document = compare_tracabilite(document, json.load(f), settings)
    except (ConfigError, ReportReadError, OSError, json.JSONDecodeError) as e:
        print(f"❌ ERREUR: {e}", file=sys.stderr)
        return 1

    data = document.to_dict()
    if args.output == "json":
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        print(_format_text(data))

    icon = "✅" if document.totals_verified else "⚠️ "
    print(
        f"{icon} {os.path.basename(args.path)}: {len(document.parts)} pièce(s), "
        f"TTC {document.total_ttc}",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
