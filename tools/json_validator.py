#!/usr/bin/env python3
"""
json_validator.py — Validation des extractions JSON contre le schéma Document.

Usage:
    python tools/json_validator.py <fichier.json> [schema.json]
    python tools/json_validator.py output/extractions/ [schema.json]  # batch
"""

import glob
import json
import os
import sys

from jsonschema import Draft7Validator, ValidationError, validate

DEFAULT_SCHEMA = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "schemas", "document.json"
)


def load_schema(schema_path: str = DEFAULT_SCHEMA) -> dict:
    with open(schema_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def document_errors(data: dict, schema: dict | None = None) -> list[str]:
    """Toutes les violations du schéma pour un Document sérialisé."""
    schema = schema or load_schema()
    validator = Draft7Validator(schema)
    return [
        f"{'/'.join(str(p) for p in error.absolute_path) or '<racine>'}: {error.message}"
        for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    ]


def validate_file(json_path: str, schema_path: str = DEFAULT_SCHEMA) -> dict:
    """Valide un fichier JSON contre un schéma."""
    result = {
        "fichier": json_path,
        "schema": schema_path,
        "valide": False,
        "erreurs": []
    }

    try:
        with open(json_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        validate(instance=data, schema=load_schema(schema_path))
        result["valide"] = True

    except json.JSONDecodeError as e:
        result["erreurs"].append(f"JSON invalide: {str(e)}")

    except ValidationError as e:
        result["erreurs"].append(f"Validation échouée: {e.message}")
        result["chemin_erreur"] = list(e.absolute_path)

    except FileNotFoundError as e:
        result["erreurs"].append(f"Fichier non trouvé: {str(e)}")

    return result


def validate_batch(directory: str, schema_path: str = DEFAULT_SCHEMA) -> dict:
    """Valide tous les fichiers JSON d'un répertoire."""
    results = {
        "schema": schema_path,
        "total": 0,
        "valides": 0,
        "invalides": 0,
        "details": []
    }

    json_files = sorted(
        f for f in glob.glob(os.path.join(directory, "*.json"))
        if not os.path.basename(f).startswith("_")
    )
    results["total"] = len(json_files)

    for json_file in json_files:
        result = validate_file(json_file, schema_path)
        results["details"].append(result)
        if result["valide"]:
            results["valides"] += 1
        else:
            results["invalides"] += 1

    return results


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python json_validator.py <fichier_ou_dossier.json> [schema.json]", file=sys.stderr)
        return 1

    target = argv[0]
    schema_path = argv[1] if len(argv) > 1 else DEFAULT_SCHEMA

    if os.path.isdir(target):
        results = validate_batch(target, schema_path)
        print(json.dumps(results, ensure_ascii=False, indent=2))

        print(f"\n{'='*50}", file=sys.stderr)
        print(f"Résultats: {results['valides']}/{results['total']} valides", file=sys.stderr)
        if results["invalides"] > 0:
            print(f"⚠️  {results['invalides']} fichiers invalides:", file=sys.stderr)
            for d in results["details"]:
                if not d["valide"]:
                    print(f"  ❌ {d['fichier']}: {d['erreurs'][0]}", file=sys.stderr)
        return 0 if results["invalides"] == 0 else 1

    result = validate_file(target, schema_path)
    print(json.dumps(result, ensure_ascii=False, indent=2))

    if result["valide"]:
        print(f"✅ {target} est valide", file=sys.stderr)
    else:
        print(f"❌ {target} est invalide: {result['erreurs']}", file=sys.stderr)
    return 0 if result["valide"] else 1


if __name__ == "__main__":
    sys.exit(main())
