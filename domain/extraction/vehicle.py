"""Vehicle stages: make and model, then registration, VIN, mileage and year.

Only stdlib and domain imports allowed.
"""

import logging
import re

logger = logging.getLogger(__name__)

CAR_BRANDS = (
    "Renault",
    "Peugeot",
    "Citroën",
    "Toyota",
    "Volkswagen",
    "BMW",
    "Mercedes",
    "Audi",
    "Ford",
    "Opel",
    "Fiat",
    "Hyundai",
    "Kia",
    "Nissan",
    "Dacia",
)

_VEHICLE_SECTION = re.compile(r"V[ÉE]HICULE[ \t]*:?[ \t]*([^\n]+)", re.IGNORECASE)
_MARQUE = re.compile(r"\bMarque[ \t]*:?[ \t]*([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ-]*)", re.IGNORECASE)
_MODELE = re.compile(
    r"\bMod[èe]le[ \t]*:?[ \t]*([^\n:!]+?)[ \t]*(?::|!|$)", re.IGNORECASE | re.MULTILINE
)

_SIV = re.compile(r"\b[A-Z]{2}[ -]?\d{3}[ -]?[A-Z]{2}\b")
_FNI = re.compile(r"\b\d{1,4}[ ]?[A-Z]{1,3}[ ]?\d{2}\b")
_REGISTRATION_LABEL = re.compile(
    r"Immat(?:riculation)?\.?[ \t]*:?[ \t]*([A-Z0-9][A-Z0-9 -]{4,}[A-Z0-9])", re.IGNORECASE
)
_VIN_LABEL = re.compile(
    r"(?:\bVIN|N[°o]?[ \t]*(?:de[ \t]+)?s[ée]rie|Num[ée]ro[ \t]+(?:de[ \t]+)?s[ée]rie)"
    r"[ \t]*:?[ \t]*([A-HJ-NPR-Z0-9]{17})\b",
    re.IGNORECASE,
)
_VIN = re.compile(r"\b(?=[0-9]*[A-HJ-NPR-Z])[A-HJ-NPR-Z0-9]{17}\b")
_MILEAGE_LABEL = re.compile(
    r"Kilom[ée]trage[ \t]*:?[ \t]*(\d{1,3}(?:[ .]?\d{3})*)(?!\d)", re.IGNORECASE
)
_MILEAGE = re.compile(
    r"(?<![\d.,])(\d{1,3}(?:[ ]?\d{3})*)[ ]?(?:km|kilom[èe]tres)\b", re.IGNORECASE
)
_YEAR = (
    re.compile(
        r"(?:mise\s+en\s+circulation|\bMEC\b|1[èe]re\s+immat\w*)[^\n\d]{0,20}"
        r"(?:\d{1,2}[/.-]\d{1,2}[/.-])?((?:19|20)\d{2})\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bAnn[ée]e(?:\s+mod[èe]le)?[ \t]*:?[ \t]*((?:19|20)\d{2})\b", re.IGNORECASE),
)


def _canonical_brand(name):
    for brand in CAR_BRANDS:
        if brand.lower() == name.lower():
            return brand
    return None


def _first_words(text, count):
    return " ".join(text.split()[:count]) or None


def extract_vehicle(context, document):
    doc = document.copy()
    vehicle = doc.vehicle
    text = context.text

    for brand in CAR_BRANDS:
        match = re.search(rf"\b{brand}[ \t]+([A-Za-z0-9][A-Za-z0-9 \t]*)", text, re.IGNORECASE)
        if match:
            vehicle.make = brand
            vehicle.model = _first_words(match.group(1), 3)
            logger.debug("Véhicule trouvé: %s %s", vehicle.make, vehicle.model)
            break

    if vehicle.make is None:
        section = _VEHICLE_SECTION.search(text)
        if section:
            info = section.group(1)
            for brand in CAR_BRANDS:
                position = info.lower().find(brand.lower())
                if position == -1:
                    continue
                vehicle.make = brand
                vehicle.model = _first_words(info[position + len(brand):], 2)
                break

    marque = _MARQUE.search(text)
    if marque and vehicle.make is None:
        vehicle.make = _canonical_brand(marque.group(1)) or marque.group(1)
    modele = _MODELE.search(text)
    if modele and vehicle.model is None:
        vehicle.model = modele.group(1).strip()
    return doc


def _registration(text):
    labeled = _REGISTRATION_LABEL.search(text)
    if labeled:
        value = labeled.group(1)
        inner = _SIV.search(value) or _FNI.search(value)
        return inner.group(0) if inner else value.strip()
    for pattern in (_SIV, _FNI):
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def extract_vehicle_identifiers(context, document):
    doc = document.copy()
    vehicle = doc.vehicle
    text = context.text

    vehicle.registration = _registration(text)

    vin = _VIN_LABEL.search(text)
    if vin:
        vehicle.vin = vin.group(1).upper()
    else:
        vin = _VIN.search(text)
        if vin:
            vehicle.vin = vin.group(0)

    mileage = _MILEAGE_LABEL.search(text) or _MILEAGE.search(text)
    if mileage:
        vehicle.mileage = int(re.sub(r"[ .]", "", mileage.group(1)))

    for pattern in _YEAR:
        year = pattern.search(text)
        if year:
            vehicle.year = int(year.group(1))
            break
    return doc
