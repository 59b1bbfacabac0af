"""Domain normalization — pure functions, zero external dependencies.

Only stdlib imports allowed.
"""

import re

from domain.models import PartCategory

_COLUMN_RULES = re.compile(r"[!|]+")
_PAINT_WORDS = ("opaque", "vernis", "teinte", "base mate", "apprêt", "diluant")
_FORFAIT_WORDS = ("forfait", "autre opération", "opération forfaitaire")
_INGREDIENT = re.compile(r"ingr[eé]dients?", re.IGNORECASE)


def normalize_description(label):
    """Strip column rules, collapse whitespace."""
    result = _COLUMN_RULES.sub(" ", label or "")
    return " ".join(result.split()).strip()


def determine_category(description):
    """Billing category from a part description (paint, flat rate, else part)."""
    if not description:
        return PartCategory.PIECE
    desc = description.lower()
    if any(word in desc for word in _PAINT_WORDS):
        return PartCategory.PEINTURE
    if any(word in desc for word in _FORFAIT_WORDS):
        return PartCategory.FORFAIT
    return PartCategory.PIECE


def is_ingredient_label(label):
    """True for 'Ingrédients peinture', 'Ingrédient Métal Vernis' and the like."""
    return bool(_INGREDIENT.search(label or ""))


def split_person_name(full_name):
    """Split ``DUPONT Marie`` / ``Marie DUPONT`` into (first_name, last_name).

    Upper-case words are the surname wherever they sit; a name written
    entirely in capitals puts the surname first, French style.
    """
    words = full_name.split()
    if not words:
        return "Unknown", "Unknown"
    if len(words) == 1:
        return "Unknown", words[0]

    capitals = [w for w in words if w.isupper()]
    if capitals and len(capitals) < len(words):
        first = [w for w in words if not w.isupper()]
        return " ".join(first), " ".join(capitals)
    if capitals:
        return " ".join(words[1:]), words[0]
    return words[0], " ".join(words[1:])
