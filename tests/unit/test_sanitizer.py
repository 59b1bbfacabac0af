"""Tests for domain.sanitizer — billing line cleanup."""

import copy

import pytest

from domain.models import PartCategory, PartLine
from domain.sanitizer import apply_remise, is_billable_label, sanitize_parts


class TestIsBillableLabel:
    """Tests for is_billable_label."""

    @pytest.mark.parametrize("label", ["TVA 20%", "Taux horaire", "20 %", "Ingrédients peinture", "  "])
    def test_rejected(self, label):
        assert not is_billable_label(label)

    def test_part_label_accepted(self):
        assert is_billable_label("PARE-CHOCS AV")


class TestApplyRemise:
    """Tests for apply_remise."""

    def test_percentage(self):
        assert apply_remise(100.0, "25%") == 75.0

    def test_amount(self):
        assert apply_remise(100.0, 25) == 75.0

    def test_blank(self):
        assert apply_remise(100.0, "") == 100.0


class TestSanitizeParts:
    """Tests for sanitize_parts."""

    def test_defaults_quantity(self):
        result = sanitize_parts([{"description": "AILE AV G", "unitPrice": 120}])
        assert result[0]["quantity"] == 1.0
        assert result[0]["unitPrice"] == 120.0
        assert result[0]["price"] == 120.0

    def test_drops_vat_and_ingredient_lines(self):
        parts = [
            {"description": "TVA", "unitPrice": 20},
            {"description": "Ingrédients peinture", "unitPrice": 45},
            {"description": "OPTIQUE AV D", "unitPrice": 210},
        ]
        result = sanitize_parts(parts)
        assert [p["description"] for p in result] == ["OPTIQUE AV D"]

    def test_net_amount_wins(self):
        result = sanitize_parts([{"description": "ROULEMENT", "quantite": 1, "montantHT": 100}])
        assert result[0]["unitPrice"] == 100.0
        assert "montantHT" not in result[0]

    def test_remise_applied_once_with_comment(self):
        result = sanitize_parts([{"description": "ROULEMENT", "unitPrice": 100, "remise": "25%"}])
        assert result[0]["unitPrice"] == 75.0
        assert "25" in result[0]["comment"]

    def test_part_line_with_table_net_preserved(self):
        part = PartLine(
            description="ROULEMENT",
            unit_price=75.0,
            remise="25",
            comment="Remise appliquée : 25 (quantité : 1)",
            category=PartCategory.PIECE,
        )
        result = sanitize_parts([part])
        assert result[0]["unitPrice"] == 75.0
        assert "25" in result[0]["comment"]

    def test_unreadable_price_dropped(self):
        assert sanitize_parts([{"description": "JOINT", "unitPrice": "n/a"}]) == []

    def test_idempotent(self):
        parts = [
            {"description": "AILE", "unitPrice": "120,50", "quantite": "2"},
            {"description": "ROULEMENT", "unitPrice": 100, "remise": "10%"},
            {"description": "BAGUE", "montantHT": "33,10"},
        ]
        once = sanitize_parts(parts)
        assert sanitize_parts(once) == once

    def test_input_not_mutated(self):
        parts = [{"description": "ROULEMENT", "unitPrice": 100, "remise": "10%"}]
        before = copy.deepcopy(parts)
        sanitize_parts(parts)
        assert parts == before

    def test_non_list_raises(self):
        with pytest.raises(TypeError):
            sanitize_parts({"description": "AILE"})

    def test_invalid_record_raises(self):
        with pytest.raises(TypeError):
            sanitize_parts([42])
