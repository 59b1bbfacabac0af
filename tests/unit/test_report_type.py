"""Tests for domain.report_type — report family detection."""

from domain.models import ReportType
from domain.report_type import detect_report_type


class TestDetectReportType:
    """Tests for detect_report_type."""

    def test_bca_disclaimer(self):
        assert detect_report_type("Ceci n'est pas un ordre de réparation") is ReportType.BCA

    def test_bca_amount_label(self):
        assert detect_report_type("MONTANT REPARATION TTC 1 527,23") is ReportType.BCA

    def test_independent(self):
        assert detect_report_type("Émetteur : Cabinet Martin") is ReportType.INDEPENDENT

    def test_structured(self):
        assert detect_report_type("Liste des pièces\nQté Libellé") is ReportType.STRUCTURED_PDF

    def test_bca_wins_over_structured(self):
        text = "Liste des pièces\nBCA Expertise"
        assert detect_report_type(text) is ReportType.BCA

    def test_generic(self):
        assert detect_report_type("Rapport du véhicule") is ReportType.GENERIC

    def test_empty_and_non_string(self):
        assert detect_report_type("") is ReportType.GENERIC
        assert detect_report_type(None) is ReportType.GENERIC
