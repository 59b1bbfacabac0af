"""Domain anomaly rules — pure functions, zero external dependencies.

Only stdlib and domain imports allowed.
"""

import re

from domain.models import ResultatAnomalie, is_known

_SUSPICIOUS_DECIMALS = (
    (re.compile(r"\.99[5-9]$"), "arrondi proche de l'unité"),
    (re.compile(r"\.00[1-4]$"), "résidu flottant"),
    (re.compile(r"\.\d{3,}$"), "plus de deux décimales"),
)


def check_totals_coherence(total_ht, tax_amount, total_ttc, tolerance=0.01):
    """Check that HT + TVA matches TTC within tolerance."""
    if None in (total_ht, tax_amount, total_ttc):
        return ResultatAnomalie(
            est_valide=True,
            code_regle="TOT_001",
            description="Totaux incomplets, verification impossible",
        )
    ecart = round(total_ht + tax_amount - total_ttc, 2)
    if abs(ecart) > tolerance:
        return ResultatAnomalie(
            est_valide=False,
            code_regle="TOT_001",
            description=f"Ecart de {ecart:.2f} entre HT + TVA et TTC",
            details={
                "total_ht": total_ht,
                "tva": tax_amount,
                "total_ttc": total_ttc,
                "ecart": ecart,
            },
        )
    return ResultatAnomalie(
        est_valide=True,
        code_regle="TOT_001",
        description="Totaux coherents",
    )


def check_labor_coherence(hours, rate, labor_total, tolerance=0.01):
    """Check that hours * rate matches the labor total."""
    if not (is_known(hours) and is_known(rate)) or labor_total is None or not hours:
        return ResultatAnomalie(
            est_valide=True,
            code_regle="MO_001",
            description="Main d'oeuvre incomplete",
        )
    attendu = round(hours * rate, 2)
    if abs(attendu - labor_total) > tolerance:
        return ResultatAnomalie(
            est_valide=False,
            code_regle="MO_001",
            description=f"Heures x taux = {attendu:.2f}, total MO = {labor_total:.2f}",
            details={
                "attendu": attendu,
                "reel": labor_total,
                "taux_deduit": round(labor_total / hours, 2),
            },
        )
    return ResultatAnomalie(
        est_valide=True,
        code_regle="MO_001",
        description="Main d'oeuvre coherente",
    )


def check_lines_against_total(lines_total_ht, total_ht, tolerance=1.0):
    """Check that parts + labor add up to the reported HT total."""
    if lines_total_ht is None or total_ht is None:
        return ResultatAnomalie(
            est_valide=True,
            code_regle="LIG_001",
            description="Total HT absent",
        )
    ecart = round(lines_total_ht - total_ht, 2)
    if abs(ecart) > tolerance:
        return ResultatAnomalie(
            est_valide=False,
            code_regle="LIG_001",
            description=f"Lignes {lines_total_ht:.2f} pour un total HT de {total_ht:.2f}",
            details={"lignes": lines_total_ht, "total_ht": total_ht, "ecart": ecart},
        )
    return ResultatAnomalie(
        est_valide=True,
        code_regle="LIG_001",
        description="Lignes coherentes avec le total",
    )


def check_suspicious_decimals(amounts):
    """Flag amounts carrying floating residue or more than two decimals."""
    suspects = []
    for amount in amounts:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            continue
        printed = repr(float(amount))
        for pattern, motif in _SUSPICIOUS_DECIMALS:
            if pattern.search(printed):
                suspects.append({"montant": amount, "motif": motif})
                break
    if suspects:
        return ResultatAnomalie(
            est_valide=False,
            code_regle="DEC_001",
            description=f"{len(suspects)} montant(s) aux decimales suspectes",
            details={"suspects": suspects},
        )
    return ResultatAnomalie(
        est_valide=True,
        code_regle="DEC_001",
        description="Decimales correctes",
    )


def check_tracabilite_total(manual_total, total_ttc, tolerance=1.0):
    """Compare the manually entered invoice total with the extracted TTC."""
    if manual_total is None or total_ttc is None:
        return ResultatAnomalie(
            est_valide=True,
            code_regle="TRA_001",
            description="Pas de total de tracabilite",
        )
    ecart = round(manual_total - total_ttc, 2)
    if abs(ecart) > tolerance:
        return ResultatAnomalie(
            est_valide=False,
            code_regle="TRA_001",
            description=f"Total saisi {manual_total:.2f} different du TTC extrait {total_ttc:.2f}",
            details={"manuel": manual_total, "extrait": total_ttc, "ecart": ecart},
        )
    return ResultatAnomalie(
        est_valide=True,
        code_regle="TRA_001",
        description="Total de tracabilite coherent",
    )
