"""Domain models — pure Python, zero external dependencies.

Only stdlib imports allowed: copy, dataclasses, enum, math.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from enum import Enum


class ReportType(Enum):
    """Family of expertise report, used as an extraction hint."""

    BCA = "BCA"
    INDEPENDENT = "Independent"
    STRUCTURED_PDF = "StructuredPDF"
    GENERIC = "Generic"


class PartCategory(Enum):
    """Billing category of a part line."""

    PIECE = "piece"
    PEINTURE = "peinture"
    FORFAIT = "forfait"
    DISCOUNT = "discount"
    SUPPLY = "supply"


class Unspecified(Enum):
    """Hours or rate not expressed on the report (printed as '-')."""

    DASH = "-"


UNSPECIFIED = Unspecified.DASH

# Known(number) | Unspecified
Hours = float | Unspecified


def is_known(value) -> bool:
    """True when an Hours value carries a usable number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


# ── Configuration ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExtractionSettings:
    """Tunable defaults threaded through extraction and invoicing."""

    tax_rate: float = 0.20
    default_labor_rate: float = 70.0
    default_supplies_amount: float = 10.0
    totals_tolerance: float = 0.01
    candidate_tolerance: float = 1.0
    tracabilite_tolerance: float = 1.0
    ocr_min_chars: int = 200
    ocr_lang: str = "fra+eng"


DEFAULT_SETTINGS = ExtractionSettings()


# ── Entities ────────────────────────────────────────────────────────────


@dataclass
class Client:
    """Insured person named on the report."""

    name: str | None = None
    first_name: str = "Unknown"
    last_name: str = "Unknown"
    email: str | None = None
    phone: str | None = None
    address: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
        }


@dataclass
class Vehicle:
    """Damaged vehicle."""

    make: str | None = None
    model: str | None = None
    registration: str | None = None
    vin: str | None = None
    year: int | None = None
    mileage: int | None = None

    def to_dict(self) -> dict:
        return {
            "make": self.make,
            "model": self.model,
            "registration": self.registration,
            "vin": self.vin,
            "year": self.year,
            "mileage": self.mileage,
        }


@dataclass
class Insurer:
    """Insurance company and claim references."""

    name: str | None = None
    policy_number: str | None = None
    claim_number: str | None = None
    contact: str | None = None
    address: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "policyNumber": self.policy_number,
            "claimNumber": self.claim_number,
            "contact": self.contact,
            "address": self.address,
        }


@dataclass
class ReportInfo:
    """Report metadata."""

    report_type: ReportType = ReportType.GENERIC
    report_number: str | None = None
    tracabilite: dict | None = None

    def to_dict(self) -> dict:
        data = {"reportType": self.report_type.value}
        if self.report_number:
            data["reportNumber"] = self.report_number
        if self.tracabilite is not None:
            data["tracabilite"] = self.tracabilite
        return data


@dataclass
class PartLine:
    """A billable part, supply, flat-rate or discount line."""

    description: str
    quantity: float = 1.0
    unit_price: float = 0.0
    reference: str | None = None
    operation: str | None = None
    category: PartCategory | None = None
    comment: str | None = None
    remise: str | None = None

    @property
    def amount(self) -> float:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        data = {
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
        }
        if self.reference:
            data["reference"] = self.reference
        if self.operation:
            data["operation"] = self.operation
        if self.category is not None:
            data["category"] = self.category.value
        if self.comment:
            data["comment"] = self.comment
        if self.remise is not None:
            # unit_price is already net of the remise column
            data["remise"] = self.remise
            data["htNet"] = self.unit_price
        return data

    @classmethod
    def from_dict(cls, data: dict) -> PartLine:
        category = data.get("category")
        return cls(
            description=data["description"],
            quantity=data.get("quantity", 1.0),
            unit_price=data.get("unitPrice", data.get("price", 0.0)),
            reference=data.get("reference"),
            operation=data.get("operation"),
            category=PartCategory(category) if category else None,
            comment=data.get("comment"),
            remise=data.get("remise"),
        )


@dataclass
class LaborLine:
    """A labor entry: qualification row, flat rate or paint ingredient."""

    type: str
    hours: Hours = UNSPECIFIED
    rate: Hours = UNSPECIFIED
    total: float = 0.0

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "hours": self.hours if is_known(self.hours) else UNSPECIFIED.value,
            "rate": self.rate if is_known(self.rate) else UNSPECIFIED.value,
            "total": self.total,
        }


@dataclass
class Document:
    """Structured result of one expertise report extraction."""

    client: Client = field(default_factory=Client)
    vehicle: Vehicle = field(default_factory=Vehicle)
    insurer: Insurer = field(default_factory=Insurer)
    report: ReportInfo = field(default_factory=ReportInfo)
    parts: list[PartLine] = field(default_factory=list)
    labor_details: list[LaborLine] = field(default_factory=list)
    total_ht: float | None = None
    tax_amount: float | None = None
    total_ttc: float | None = None
    tax_rate: float | None = None
    total_ht_after_discount: float | None = None
    labor_hours: float | None = None
    labor_rate: float | None = None
    labor_total: float | None = None
    lines_total_ht: float | None = None
    totals_verified: bool | None = None
    warnings: list[str] = field(default_factory=list)
    missing_terms: list[str] = field(default_factory=list)
    debug: dict = field(default_factory=dict)
    debug_summary: dict = field(default_factory=dict)
    summary: dict = field(default_factory=dict)

    def copy(self) -> Document:
        return copy.deepcopy(self)

    def add_warning(self, tag: str) -> None:
        if tag not in self.warnings:
            self.warnings.append(tag)

    def has_part(self, description: str, unit_price: float | None = None) -> bool:
        """True when a part with this description (and price) is recorded."""
        wanted = description.strip().upper()
        for part in self.parts:
            if part.description.strip().upper() != wanted:
                continue
            if unit_price is None or abs(part.unit_price - unit_price) <= 0.01:
                return True
        return False

    def to_dict(self) -> dict:
        return {
            "client": self.client.to_dict(),
            "vehicle": self.vehicle.to_dict(),
            "insurer": self.insurer.to_dict(),
            "report": self.report.to_dict(),
            "parts": [p.to_dict() for p in self.parts],
            "laborDetails": [l.to_dict() for l in self.labor_details],
            "totalHT": self.total_ht,
            "taxAmount": self.tax_amount,
            "totalTTC": self.total_ttc,
            "taxRate": self.tax_rate,
            "totalHTAfterDiscount": self.total_ht_after_discount,
            "laborHours": self.labor_hours,
            "laborRate": self.labor_rate,
            "laborTotal": self.labor_total,
            "linesTotalHT": self.lines_total_ht,
            "totalsVerified": self.totals_verified,
            "warnings": list(self.warnings),
            "missingTerms": list(self.missing_terms),
            "debug": copy.deepcopy(self.debug),
            "debugSummary": dict(self.debug_summary),
            "summary": copy.deepcopy(self.summary),
        }


# ── Result Value Objects ────────────────────────────────────────────────


@dataclass(frozen=True)
class LaborRow:
    """One row of a labor table: hours x rate = montant HT."""

    label: str
    hours: float
    rate: float
    montant_ht: float
    montant_tva: float | None = None
    montant_ttc: float | None = None

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "hours": self.hours,
            "rate": self.rate,
            "montantHT": self.montant_ht,
            "montantTVA": self.montant_tva,
            "montantTTC": self.montant_ttc,
        }


@dataclass(frozen=True)
class LaborSummary:
    """Aggregated labor figures read from free text."""

    total: float
    hours: float | None = None
    rate: float | None = None
    zero_lines: int = 0


@dataclass(frozen=True)
class InvoiceTotals:
    """Read-only invoice totals computed in integer cents."""

    subtotal: float
    tax_amount: float
    total: float
    item_count: int


@dataclass(frozen=True)
class RecalculatedTotals:
    """Read-only HT / TVA / TTC triple from parts and labor."""

    total_ht: float
    tva: float
    total_ttc: float


@dataclass(frozen=True)
class TotalsCandidate:
    """One reading of the totals section, ranked by confidence."""

    source: str
    total_ht: float | None = None
    tva: float | None = None
    total_ttc: float | None = None
    confidence: float = 0.5
    tax_rate: float | None = None

    @property
    def has_values(self) -> bool:
        return any(v is not None for v in (self.total_ht, self.tva, self.total_ttc))

    @property
    def is_complete(self) -> bool:
        return None not in (self.total_ht, self.tva, self.total_ttc)

    def is_consistent(self, tolerance: float = 1.0) -> bool:
        if not self.is_complete:
            return False
        return abs(self.total_ht + self.tva - self.total_ttc) <= tolerance


@dataclass(frozen=True)
class ResultatAnomalie:
    """Read-only result of an anomaly rule check."""

    est_valide: bool
    code_regle: str
    description: str
    details: dict = field(default_factory=dict)
