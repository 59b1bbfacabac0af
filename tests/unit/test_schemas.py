"""
test_schemas.py — Tests de validité du schéma Document lui-même.
"""

import json

from jsonschema import Draft7Validator

from domain.models import Document, LaborLine, PartCategory, PartLine
from tools.json_validator import DEFAULT_SCHEMA, document_errors, load_schema


def test_schema_is_valid_json_schema():
    """Le schéma est du JSON valide et un Draft-07 correct."""
    with open(DEFAULT_SCHEMA, 'r', encoding='utf-8') as f:
        schema = json.load(f)
    assert "$schema" in schema
    assert schema["type"] == "object"
    Draft7Validator.check_schema(schema)


def test_default_document_is_valid():
    """Un Document vide sérialisé respecte le schéma."""
    assert document_errors(Document().to_dict()) == []


def test_populated_document_is_valid():
    """Pièces avec remise, forfait sans heures, totaux : tout est conforme."""
    doc = Document(
        parts=[
            PartLine(description="ROULEMENT", unit_price=75.0, remise="25",
                     comment="Remise appliquée 25", category=PartCategory.PIECE),
            PartLine(description="Remise 10%", unit_price=-20.0, category=PartCategory.DISCOUNT),
        ],
        labor_details=[
            LaborLine(type="FORFAITS", total=45.0),
            LaborLine(type="T1", hours=1.0, rate=62.0, total=62.0),
        ],
        total_ht=100.0,
        tax_amount=20.0,
        total_ttc=120.0,
        totals_verified=True,
    )
    assert document_errors(doc.to_dict(), load_schema()) == []


def test_category_values_match_schema():
    """Chaque PartCategory est acceptée par l'énumération du schéma."""
    enum = load_schema()["definitions"]["part"]["properties"]["category"]["enum"]
    assert sorted(enum) == sorted(c.value for c in PartCategory)
