"""End-to-end tests for extract_structured_data — OCR text to Document."""

import re

import pytest

from domain.extraction.pipeline import STAGES, extract_structured_data
from domain.extraction.reconciliation import TOTALS_MISMATCH
from domain.models import UNSPECIFIED, Document, ExtractionSettings, ReportType
from domain.numbers import parse_number
from domain.sanitizer import sanitize_parts


def find_part(doc, pattern):
    return next((p for p in doc.parts if re.search(pattern, p.description, re.IGNORECASE)), None)


def find_labor(doc, pattern):
    return next((l for l in doc.labor_details if re.search(pattern, l.type, re.IGNORECASE)), None)


class TestTotalsVerification:
    """TTC checked against HT + TVA to the cent."""

    def test_matching_amounts(self):
        doc = extract_structured_data("TOTAL HT : 100,00\nTVA : 20,00\nTOTAL TTC : 120,00")
        assert doc.totals_verified is True
        assert TOTALS_MISMATCH not in doc.warnings

    def test_mismatch_is_reported_not_corrected(self):
        doc = extract_structured_data("TOTAL HT : 100,00\nTVA : 20,00\nTOTAL TTC : 119,00")
        assert doc.totals_verified is False
        assert TOTALS_MISMATCH in doc.warnings
        assert doc.total_ttc == 119.0

    def test_single_line_totals(self):
        doc = extract_structured_data("ROULEMENT 1 50,00 50,00\nTOTAL HT 50,00 TVA 10,00 TOTAL TTC 60,00")
        assert doc.total_ht == 50
        assert doc.tax_amount == 10
        assert doc.total_ttc == 60

    def test_zero_amount_line_preserved(self):
        text = "ROULEMENT 1 0,00 0,00\nTOTAL HT : 0,00\nTVA : 0,00\nTOTAL TTC : 0,00"
        part = find_part(extract_structured_data(text), "ROULEMENT")
        assert part is not None
        assert part.unit_price == 0


class TestLabor:
    """Labor totals, hours and inferred rates."""

    def test_global_labor_amount(self):
        text = (
            "Main d'oeuvre HT : 100,00 €\nDEPOSE PARE-CHOC 1 50,00 50,00\n"
            "TOTAL HT : 150,00\nTVA : 30,00\nTOTAL TTC : 180,00"
        )
        doc = extract_structured_data(text)
        assert doc.labor_total == 100
        assert doc.lines_total_ht == 150

    def test_rate_inferred_from_total(self):
        text = (
            "Main d'oeuvre : 2 h\nMain d'oeuvre HT : 160,00\n"
            "TOTAL HT : 160,00\nTVA : 32,00\nTOTAL TTC : 192,00"
        )
        doc = extract_structured_data(text)
        assert doc.labor_rate == 80
        assert doc.labor_total == 160
        assert "laborRate inferred 80" in doc.debug["adjustments"]

    def test_alpha_expert_single_lines(self):
        text = (
            "MAIN D’ŒUVRE (REPARATION) – 2,30 h – 70,00 €/h – 161,00 €\n"
            "Main-d’œuvre Carrosserie – 3,25 h – 72,00 €/h – 234,00 €\n"
            "INGRÉDIENTS PEINTURE – 205,00 €\n"
            "PEINTURE – 745,00 €\n"
            "TOTAL HT : 1345,00\nTVA : 269,00\nTOTAL TTC : 1614,00"
        )
        doc = extract_structured_data(text)
        assert "auto_interpreted" in doc.warnings
        assert round(doc.labor_hours, 2) == 5.55
        assert find_part(doc, r"ingr[eé]dients").unit_price == 205
        assert find_part(doc, r"^PEINTURE").unit_price == 745

    def test_default_rate_when_none_found(self):
        doc = extract_structured_data("Rien à signaler")
        assert doc.labor_rate == 70.0

    def test_default_rate_from_settings(self):
        doc = extract_structured_data("Rien", ExtractionSettings(default_labor_rate=55.0))
        assert doc.labor_rate == 55.0


class TestFlatRates:
    """FORFAITS lines in their different layouts."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("FORFAITS 10,00\nTOTAL HT : 10,00\nTVA : 2,00\nTOTAL TTC : 12,00", 10),
            ("MAIN D'OEUVE\nFORFAITS\n150,00\nTOTAL HT : 150,00", 150),
            ("FORFAITS 150\nTOTAL HT : 150,00\nTVA : 30,00\nTOTAL TTC : 180,00", 150),
            ("FORFAITS 111,05 €", 111.05),
            ("forfait(s) 45,00", 45),
            ("Forfait - - - 27,00", 27),
        ],
    )
    def test_forfaits_amount(self, text, expected):
        line = find_labor(extract_structured_data(text), r"^FORFAITS$")
        assert line is not None
        assert line.total == expected
        assert line.hours is UNSPECIFIED

    def test_simple_forfait(self):
        line = find_labor(extract_structured_data("Forfait       27,00"), r"^Forfait$")
        assert line is not None
        assert line.total == 27

    def test_forfaits_with_hours_and_rate(self):
        line = find_labor(extract_structured_data("FORFAITS 3h 75 225"), r"^FORFAITS$")
        assert (line.hours, line.rate, line.total) == (3, 75, 225)

    def test_forfait_section_with_quantity_column(self):
        text = (
            "! Forfait par choc !\n"
            "!Libellé Qté P.U. HT brut Taux TVA !\n"
            "! Autre opération forfaitaire 1.00 111.05 111.05 20.00% !\n"
            "Total"
        )
        line = find_labor(extract_structured_data(text), r"Autre opération forfaitaire")
        assert line is not None
        assert line.total == 111.05

    def test_unknown_values_serialize_as_dash(self):
        data = extract_structured_data("FORFAITS 111,05 €").to_dict()
        line = next(l for l in data["laborDetails"] if l["type"] == "FORFAITS")
        assert line["hours"] == "-"
        assert line["rate"] == "-"


class TestPaintIngredients:
    """Paint ingredients are billed once, as labor when labor mentions them."""

    def test_part_removed_when_billed_as_labor(self):
        text = (
            "Ingrédients (Mét. Vern.) 10h 100,00 1000,00\nINGRÉDIENTS PEINTURE 300,00\n"
            "TOTAL HT : 1300,00\nTVA : 260,00\nTOTAL TTC : 1560,00"
        )
        assert find_part(extract_structured_data(text), r"ingr[eé]dients\s+peinture") is None

    def test_part_kept_without_labor_entry(self):
        text = "INGRÉDIENTS PEINTURE – 300,00\nTOTAL HT : 300,00\nTVA : 60,00\nTOTAL TTC : 360,00"
        part = find_part(extract_structured_data(text), r"ingr[eé]dients\s+peinture")
        assert part is not None
        assert part.unit_price == 300

    def test_none_added_when_absent(self):
        doc = extract_structured_data("PIÈCES 50,00\nMain d'oeuvre 2 h 70,00 €/h 140,00")
        assert find_part(doc, r"ingr[eé]dients") is None

    @pytest.mark.parametrize(
        "text, total",
        [
            ("Ingrédients peinture HT : 80,00", 80),
            ("Copier Modifier Ingrédients peinture HT 100,00 600,00", 100),
            ("Ingrédients peinture HT\n100,00 600,00", 100),
            ("Ingredients peinture HT 150,00 € 180,00", 150),
            ("TOTAL HT : 1000,00\nIngrédients peinture HT 100,00\nTVA : 200,00\nTOTAL TTC : 1200,00", 100),
        ],
    )
    def test_ingredient_summary_becomes_one_hour_labor(self, text, total):
        doc = extract_structured_data(text)
        line = find_labor(doc, r"ingr[eé]dients")
        assert line is not None
        assert line.total == total
        assert find_part(doc, r"ingr[eé]dients") is None

    def test_table_row_gives_single_ingredient_line(self):
        text = (
            "Main d'oeuvre\nT1 2,00 60,00 120,00\nIngrédients peinture 1,50 40,00 60,00\n"
            "TOTAL HT : 180,00\nTVA 20% : 36,00\nTOTAL TTC : 216,00"
        )
        doc = extract_structured_data(text)
        lines = [l for l in doc.labor_details if re.search(r"ingr[eé]dients", l.type, re.IGNORECASE)]
        assert len(lines) == 1
        assert (lines[0].hours, lines[0].rate, lines[0].total) == (1.5, 40, 60)

    def test_table_row_replaces_summary_amount(self):
        text = "T1 1,00 50,00 50,00\nIngrédients peinture HT : 45,00\nIngrédients peinture 1,50 30,00 45,00"
        doc = extract_structured_data(text)
        lines = [l for l in doc.labor_details if re.search(r"ingr[eé]dients", l.type, re.IGNORECASE)]
        assert len(lines) == 1
        assert lines[0].hours == 1.5
        assert doc.debug["ingredientHeuristic"] == "labor_table"

    def test_ingredient_summary_hours_and_rate(self):
        line = find_labor(extract_structured_data("Ingrédients peinture HT : 80,00"), r"ingr[eé]dients")
        assert line.hours == 1
        assert line.rate == 80

    def test_metal_vernis_in_table(self):
        text = "T1 1,00 50,00 50,00\nIngrédient Métal Vernis 2,00 75,00 150,00"
        line = find_labor(extract_structured_data(text), r"m[ée]tal\s+vernis")
        assert (line.hours, line.rate, line.total) == (2, 75, 150)

    def test_metal_vernis_isolated(self):
        line = find_labor(extract_structured_data("Ingrédient Métal Vernis 2,00 75,00 150,00"), r"m[ée]tal\s+vernis")
        assert line.total == 150

    def test_metal_vernis_after_page_break(self):
        line = find_labor(extract_structured_data("\fIngrédient Métal Vernis 1,00 70,00 70,00"), r"m[ée]tal\s+vernis")
        assert line.hours == 1
        assert line.rate == 70

    def test_metal_vernis_without_hours(self):
        line = find_labor(extract_structured_data("Ingrédient Métal Vernis 75,00 150,00"), r"m[ée]tal\s+vernis")
        assert round(line.rate) == 75
        assert round(line.total) == 150


class TestPartsAndDiscounts:
    """Parts tables, line discounts and global discounts."""

    def test_multi_structure_sections(self):
        text = "PIECES\n2 ROULEMENT 15,00 30,00\nPeinture a prevoir\nTOTAL GENERAL 60,00 12,00 72,00"
        doc = extract_structured_data(text)
        assert find_part(doc, "ROULEMENT").quantity == 2
        assert "Peinture" in doc.missing_terms
        assert doc.debug_summary["partCount"] == len(doc.parts)
        assert isinstance(doc.debug_summary["totalsMatch"], bool)

    def test_spare_parts_total_as_line(self):
        text = "PIÈCES DE RECHANGE 480,21\nTOTAL HT : 480,21\nTVA : 96,04\nTOTAL TTC : 576,25"
        part = find_part(extract_structured_data(text), "rechange")
        assert part.unit_price == 480.21

    def test_percentage_global_discount(self):
        doc = extract_structured_data("TOTAL HT : 200,00\nRemise 10%\nTVA : 40,00\nTOTAL TTC : 240,00")
        discount = find_part(doc, "remise")
        assert discount.unit_price == -20
        assert "10%" in discount.description

    def test_alliance_table_discount(self):
        text = (
            "LISTE DES PIECES\n"
            "!Qté!Libellé!Réf. Constr.!Opé.!Mnt HT!%Vét.!%Rem.! TVA !\n"
            "! 1!ROULEMENT! !E ! 100,00! !50!20,00!"
        )
        part = find_part(extract_structured_data(text), "ROULEMENT")
        assert part.unit_price == 50
        assert "Remise appliquée" in part.comment

    def test_discount_column_in_other_order(self):
        """The discount is applied once; sanitizing keeps it."""
        text = "!Libellé!Mnt HT!%Réduc.!Qté!\n!ROULEMENT!100,00!25!1!"
        doc = extract_structured_data(text)
        part = find_part(doc, "ROULEMENT")
        assert part.unit_price == 75
        assert "25" in part.comment
        sanitized = sanitize_parts(p.to_dict() for p in doc.parts if p.description == "ROULEMENT")
        assert sanitized[0]["unitPrice"] == 75

    def test_space_separated_table(self):
        part = find_part(extract_structured_data("Libellé  Qté  Mnt HT  Remise\nROULEMENT  1  200,00  50%"), "ROULEMENT")
        assert part.unit_price == 100
        assert "50" in part.comment


class TestNumberParsing:
    """Both decimal conventions, NaN on garbage."""

    def test_french(self):
        assert parse_number("1 234,56") == 1234.56

    def test_english(self):
        assert parse_number("1,234.56") == 1234.56

    def test_garbage(self):
        assert parse_number("abc") != parse_number("abc")


class TestFallbackReport:
    """A full Alliance-style report with two text columns."""

    TEXT = """VEHICULE TECHNIQUEMENT REPARABLE                      !ESTIMATION DES DOMMAGES APPARENTS
                                                        ! - MONTANTS EXPRIMES EN EUROS -
    -OBSERVATIONS-                                      !Postes   Temps Taux Hor. Total HT
    Le chiffrage des dommages est                       !T1         0.50  62.00    31.00
    susceptible de contenir des pièces                  !T2         1.00  80.00    80.00
    issues de l'économie circulaire et/ou               !PEINT1     2.00  80.00   160.00
    d'équipementiers.                                   !Pièces   681.64
                                                        !Petites Fournitures

    Assuré: DUPONT MARIE                               !
    Email: dupont.marie@example.com                    !
    Téléphone: 06 12 34 56 78                           !
    Adresse: 12 Rue des Champs, 13000 Marseille        !
    ASSURANCE: AVANSSUR - DIRECT ASSURANCE               !
    N° Police: 0000000915181815                         !
    N° Sinistre: 95956313                               !
                                                        !
    Nous informer impérativement si                     !
    modification et attendre notre accord               !
    avant commande de pièces détachées.                 !
                                                        !
    Sans retour sous 48 heures le chiffrage             !
    sera validé.                                         !
                                                        !
    Si le projet de facturation est                     !TOTAL HT :    1272.69 TVA:    254.54
    différent du présent rapport, nous                  !TOTAL TTC:    1527.23
    transmettrons un pro-forma de facturation          !
    accompagné de la facture d'achat des                !
    pièces.                                             !
                                                        !
    ANNEXE au RAPPORT D'EXPERTISE
    Numéro 95956313

    !                     LISTE DES PIECES                             !
    !Qté!Libellé               !Réf. Constr. !Opé.  !Mnt HT  !%Vét.!%Rem.! TVA !
    -----------------------------------------------------------------
    ! 1!AGRAFES                !              !E     !   5.00!     !     !20.00!
    ! 1!DECHETS                !              !E     !   5.00!     !     !20.00!
    ! 1!MONTAGE EQUILIBRAGE    !              !E     !  12.00!     !     !20.00!
    ! 1!SPOILER AR             !              !E     ! 126.36!     !     !20.00!
    ! 1!PEINTURE DEGRE 3 PAR   !              !      !   0.00!     !     !     !
    ! 1!REMISE EN ETAT PARE-   !              !R     !   0.00!     !     !     !
    ! 1!BRAS DE SUSPENSION A   !              !E     !  99.82!     !     !20.00!
    ! 1!PNEUMATIQUE AV D D     !              !E     ! 163.00! 10.0!     !20.00!
    ! 1!JANTE AV D D           !              !E     ! 286.76!     !     !20.00!
    -----------------------------------------------------------------

    ! Ingrédients peintures par choc       !
    !Libellé      Qté    P.U.      HT brut ! TVA=     23.20 !    139.20 TTC  !
    ! Opaque vernis  2.00   58.00    116.00 !                                 !
    -----------------------------------------------------------------

    ! Forfait par choc                     !
    !Libellé                    Qté    P.U.      HT brut  Taux TVA !
    ! Autre opération forfaitaire 1.00  111.05    111.05    20.00% !
    -----------------------------------------------------------------

    VÉHICULE:
    Immatriculation: AJ-626-KP
    Kilométrage: 45000 km"""

    @pytest.fixture
    def doc(self):
        return extract_structured_data(self.TEXT)

    def test_totals(self, doc):
        assert (doc.total_ht, doc.tax_amount, doc.total_ttc) == (1272.69, 254.54, 1527.23)
        assert doc.totals_verified is True

    def test_parts(self, doc):
        assert len(doc.parts) >= 10

    def test_client(self, doc):
        assert doc.client.first_name == "MARIE"
        assert doc.client.last_name == "DUPONT"
        assert doc.client.email == "dupont.marie@example.com"
        assert doc.client.phone == "06 12 34 56 78"
        assert doc.client.address == "12 Rue des Champs, 13000 Marseille"

    def test_insurer(self, doc):
        assert doc.insurer.name == "AVANSSUR - DIRECT ASSURANCE"
        assert doc.insurer.policy_number == "0000000915181815"
        assert doc.insurer.claim_number == "95956313"

    def test_vehicle(self, doc):
        assert doc.vehicle.registration == "AJ-626-KP"
        assert doc.vehicle.mileage == 45000

    def test_report(self, doc):
        assert doc.report.report_number == "95956313"
        assert doc.report.report_type is ReportType.STRUCTURED_PDF

    def test_flat_rate_from_section(self, doc):
        assert find_labor(doc, r"Autre opération forfaitaire").total == 111.05


class TestRobustness:
    """Idempotence, purity and tolerance of odd input."""

    TEXT = "AILE AV G 1 120,00 120,00\nTOTAL HT : 120,00\nTVA : 24,00\nTOTAL TTC : 144,00"

    def test_idempotent(self):
        assert extract_structured_data(self.TEXT) == extract_structured_data(self.TEXT)

    @pytest.mark.parametrize("text", [None, 42, "", b"TOTAL HT : 1,00"])
    def test_non_text_gives_defaults(self, text):
        doc = extract_structured_data(text)
        assert isinstance(doc, Document)
        assert doc.parts == []
        assert doc.total_ht is None or doc.total_ht == 0
        assert doc.client.first_name == "Unknown"

    def test_stages_do_not_mutate_input(self):
        from domain.extraction.context import ExtractionContext

        context = ExtractionContext.from_text(self.TEXT)
        document = Document(tax_rate=0.2)
        snapshot = document.copy()
        for stage in STAGES:
            stage(context, document)
            assert document == snapshot

    def test_failing_stage_becomes_warning(self, monkeypatch):
        from domain.extraction import pipeline

        def broken(context, document):
            raise ValueError("boom")

        monkeypatch.setattr(pipeline, "STAGES", (broken,) + pipeline.STAGES)
        doc = pipeline.extract_structured_data(self.TEXT)
        assert "stage failed: broken" in doc.warnings
        assert doc.total_ttc == 144.0
