#!/usr/bin/env python3
"""
batch_runner.py — Extraction batch d'un répertoire de rapports d'expertise.

Usage:
    python tools/batch_runner.py <dossier_rapports> <dossier_output> [--strategy auto]
        [--config config.yaml]

Chaque rapport (PDF ou texte OCR .txt) produit <nom>.json, validé contre
schemas/document.json ; un rapport global _batch_report.json est écrit.
"""

import glob
import json
import logging
import os
import sys
import time
from pathlib import Path

from tools.config import load_settings
from tools.json_validator import document_errors, load_schema
from tools.report_reader import ReportReadError, read_report

logger = logging.getLogger(__name__)

REPORT_PATTERNS = ("*.pdf", "*.PDF", "*.txt")


def process_single_report(path: str, output_dir: str, settings, strategy: str = "auto",
                          schema: dict | None = None) -> dict:
    """Traite un seul rapport : extraction structurée + validation du JSON."""
    filename = Path(path).stem
    start_time = time.time()

    result = {
        "fichier": os.path.basename(path),
        "statut": "en_cours",
        "temps_traitement": 0,
        "extraction": None,
        "erreurs": []
    }

    try:
        document = read_report(path, settings, strategy)
        data = document.to_dict()
        output_path = os.path.join(output_dir, f"{filename}.json")
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

        result["extraction"] = {
            "methode": document.summary.get("ocrMethod"),
            "pieces": len(document.parts),
            "total_ttc": document.total_ttc,
            "totaux_verifies": document.totals_verified,
            "alertes": list(document.warnings),
            "fichier_sortie": f"{filename}.json"
        }
        result["erreurs"].extend(
            f"Schéma: {error}" for error in document_errors(data, schema)
        )
    except (ReportReadError, OSError) as e:
        result["erreurs"].append(f"Extraction: {str(e)}")

    result["temps_traitement"] = round(time.time() - start_time, 2)
    if result["extraction"] is None:
        result["statut"] = "echec"
    elif result["erreurs"] or result["extraction"]["alertes"]:
        result["statut"] = "partiel"
    else:
        result["statut"] = "succes"

    return result


def run_batch(input_dir: str, output_dir: str, settings=None, strategy: str = "auto") -> dict:
    """Traite tous les rapports d'un répertoire."""
    settings = settings or load_settings()
    os.makedirs(output_dir, exist_ok=True)

    report_files = sorted({
        path for pattern in REPORT_PATTERNS
        for path in glob.glob(os.path.join(input_dir, pattern))
    })

    if not report_files:
        print(f"⚠️  Aucun rapport trouvé dans {input_dir}", file=sys.stderr)
        return {"total": 0, "documents": []}

    print(f"📁 {len(report_files)} rapports trouvés dans {input_dir}", file=sys.stderr)

    batch_result = {
        "input_dir": input_dir,
        "output_dir": output_dir,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
        "total": len(report_files),
        "succes": 0,
        "partiels": 0,
        "echecs": 0,
        "temps_total": 0,
        "documents": []
    }

    schema = load_schema()
    start_total = time.time()

    for i, path in enumerate(report_files, 1):
        filename = os.path.basename(path)
        print(f"\n[{i}/{len(report_files)}] 📄 Traitement de {filename}...", file=sys.stderr)

        doc_result = process_single_report(path, output_dir, settings, strategy, schema)
        batch_result["documents"].append(doc_result)

        if doc_result["statut"] == "succes":
            batch_result["succes"] += 1
            status_icon = "✅"
        elif doc_result["statut"] == "partiel":
            batch_result["partiels"] += 1
            status_icon = "⚠️"
        else:
            batch_result["echecs"] += 1
            status_icon = "❌"

        extraction = doc_result.get("extraction") or {}
        print(
            f"  {status_icon} {doc_result['temps_traitement']}s — "
            f"Pièces: {extraction.get('pieces', 0)}, "
            f"TTC: {extraction.get('total_ttc')}",
            file=sys.stderr
        )

    batch_result["temps_total"] = round(time.time() - start_total, 2)

    report_path = os.path.join(output_dir, "_batch_report.json")
    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(batch_result, f, ensure_ascii=False, indent=2)

    print(f"\n{'='*60}", file=sys.stderr)
    print(f"📊 Résumé: {batch_result['succes']} succès, "
          f"{batch_result['partiels']} partiels, "
          f"{batch_result['echecs']} échecs "
          f"en {batch_result['temps_total']}s", file=sys.stderr)
    print(f"📁 Résultats dans: {output_dir}", file=sys.stderr)
    print(f"📋 Rapport batch: {report_path}", file=sys.stderr)
    logger.info("Batch terminé: %s", report_path)

    return batch_result


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="Extraction batch de rapports d'expertise")
    parser.add_argument("input_dir", help="Répertoire contenant les rapports")
    parser.add_argument("output_dir", help="Répertoire de sortie")
    parser.add_argument("--strategy", choices=["auto", "text", "ocr"], default="auto", help="Stratégie d'extraction")
    parser.add_argument("--config", default=None, help="Fichier de configuration YAML")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    result = run_batch(args.input_dir, args.output_dir, load_settings(args.config), args.strategy)
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0 if result.get("echecs", 0) == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
