"""Tests for domain.labor_table — labor rows, aggregation and ingredient heuristics."""

import pytest

from domain.labor_table import (
    INGREDIENT_LABEL,
    METAL_VERNIS_LABEL,
    aggregate_labor_info,
    detect_ingredient_labor,
    extract_keyword_amounts,
    ingredient_labor_mentioned,
    parse_labor_table,
)


class TestParseLaborTable:
    """Tests for parse_labor_table."""

    def test_flat_rate_row(self):
        rows = parse_labor_table("FORFAITS 3h 75 225")
        assert len(rows) == 1
        row = rows[0]
        assert row.label == "FORFAITS"
        assert row.hours == 3.0
        assert row.rate == 75.0
        assert row.montant_ht == 225.0
        assert row.montant_tva is None

    def test_qualification_rows_with_tva_ttc(self):
        text = "T1 1,00 50,00 50,00 10,00 60,00\nT2 2,50 45,00 112,50"
        rows = parse_labor_table(text)
        assert [r.label for r in rows] == ["T1", "T2"]
        assert rows[0].montant_tva == 10.0
        assert rows[0].montant_ttc == 60.0
        assert rows[1].montant_ht == 112.5

    def test_pipe_columns(self):
        rows = parse_labor_table("| PEINT1 | 1,50 | 60,00 | 90,00 |")
        assert rows[0].label == "PEINT1"
        assert rows[0].montant_ht == 90.0

    def test_bang_framed_label_cleaned(self):
        rows = parse_labor_table("12 ! T2 2,00 45,00 90,00")
        assert rows[0].label == "T2"

    def test_loose_forfait_line(self):
        rows = parse_labor_table("FORFAIT: 1 x 45 = 45")
        assert rows[0].label == "FORFAIT:"
        assert (rows[0].hours, rows[0].rate, rows[0].montant_ht) == (1.0, 45.0, 45.0)

    def test_pages_split_on_form_feed(self):
        rows = parse_labor_table("T1 1,00 50,00 50,00\fT2 1,00 40,00 40,00")
        assert len(rows) == 2

    def test_prose_ignored(self):
        assert parse_labor_table("Véhicule expertisé le 12/03\nAILE AV G") == []

    def test_non_string(self):
        assert parse_labor_table(None) == []

    def test_to_dict(self):
        row = parse_labor_table("FORFAITS 3h 75 225")[0]
        assert row.to_dict()["montantHT"] == 225.0


class TestExtractKeywordAmounts:
    """Tests for extract_keyword_amounts."""

    def test_last_decimal_of_line(self):
        text = "Peinture 12,50 45,00\nTôlerie 3,00 90,00"
        assert extract_keyword_amounts(text, ["Peinture", "Tôlerie"]) == {
            "Peinture": 45.0,
            "Tôlerie": 90.0,
        }

    def test_keyword_must_stand_alone(self):
        assert extract_keyword_amounts("Peintures 12,50", ["Peinture"]) == {}

    def test_bad_keywords(self):
        assert extract_keyword_amounts("Peinture 1,00", "Peinture") == {}


class TestAggregateLaborInfo:
    """Tests for aggregate_labor_info."""

    def test_explicit_total_wins(self):
        summary = aggregate_labor_info("T1 2,00 50,00 100,00\nMain d'oeuvre HT : 150,00")
        assert summary.total == 150.0

    def test_sum_with_reduction(self):
        text = "T1 2,00 50,00 100,00\nPEINT1 1,00 60,00 60,00\nRemise MO 10,00"
        assert aggregate_labor_info(text).total == 150.0

    def test_ingredient_without_hours_skipped(self):
        text = "T1 1,00 50,00 50,00\nIngrédients peinture 45,00"
        assert aggregate_labor_info(text).total == 50.0

    def test_hours_times_rate_when_no_lines(self):
        text = "Nombre d'heures 3\nTaux horaire 70,00"
        summary = aggregate_labor_info(text)
        assert summary.hours == 3.0
        assert summary.rate == 70.0
        assert summary.total == 210.0

    def test_non_string(self):
        assert aggregate_labor_info(None).total == 0.0


class TestDetectIngredientLabor:
    """Tests for detect_ingredient_labor."""

    def test_summary_line(self):
        name, line = detect_ingredient_labor("Ingrédients peinture HT : 45,50")
        assert name == "summary_line"
        assert line.type == INGREDIENT_LABEL
        assert (line.hours, line.rate, line.total) == (1.0, 45.5, 45.5)

    @pytest.mark.parametrize(
        "text, total",
        [
            ("Copier Ingrédients peinture HT 100,00 600,00", 100.0),
            ("Ingrédients peinture HT\n100,00 600,00", 100.0),
            ("Copier Ingrédients peinture HT . 120,00", 100.0),
        ],
    )
    def test_ht_ttc_pair(self, text, total):
        name, line = detect_ingredient_labor(text, 0.2)
        assert name == "ht_ttc_pair"
        assert line.type == INGREDIENT_LABEL
        assert (line.hours, line.total) == (1.0, total)

    def test_hours_and_total(self):
        name, line = detect_ingredient_labor("Copier Ingrédients peinture HT 1,50 h 90,00")
        assert name == "hours_and_total"
        assert (line.hours, line.rate, line.total) == (1.5, 60.0, 90.0)

    def test_bare_ht(self):
        name, line = detect_ingredient_labor("Ing. peinture : 45,00")
        assert name == "bare_ht"
        assert (line.hours, line.rate, line.total) == (1.0, 45.0, 45.0)

    def test_table_row_is_not_bare_ht(self):
        assert detect_ingredient_labor("Ingrédients peinture 1,50 40,00 60,00") is None

    def test_metal_vernis(self):
        name, line = detect_ingredient_labor("Ingrédient Métal Vernis 2,00 35,00 70,00")
        assert name == "metal_vernis"
        assert line.type == METAL_VERNIS_LABEL
        assert (line.hours, line.rate, line.total) == (2.0, 35.0, 70.0)

    def test_nothing(self):
        assert detect_ingredient_labor("AILE AV G 120,00") is None
        assert detect_ingredient_labor(None) is None


class TestIngredientLaborMentioned:
    """Tests for ingredient_labor_mentioned."""

    def test_with_hours(self):
        assert ingredient_labor_mentioned("Ingrédients peinture 1,50 h 45,00")

    def test_absent(self):
        assert not ingredient_labor_mentioned("AILE AV G 120,00")
