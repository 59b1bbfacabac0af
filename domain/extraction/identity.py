"""Identity stages: insured client, contact details, address, insurer.

French reports write the insured as ``ASSURÉ : DUPONT Marie`` with the
surname in capitals; the stages below read that convention first and fall
back to civility or ``Client :`` labels.

Only stdlib and domain imports allowed.
"""

import logging
import re

from domain.normalization import split_person_name

logger = logging.getLogger(__name__)

_NAME = r"([A-Za-zÀ-ÿ'][A-Za-zÀ-ÿ' \t-]*)"

_ASSURE = re.compile(rf"\bASSUR[ÉE]\b\.?[ \t]*:?[ \t]*{_NAME}", re.IGNORECASE)
_ASSURE_NEXT_LINE = re.compile(rf"\bAssur[ée]\b[ \t]*\n[ \t]*{_NAME}", re.IGNORECASE)
_CIVILITY = re.compile(
    rf"(?<![\w.])(?:M\.|Mme|MME|Monsieur|MONSIEUR|Madame|MADAME)[ \t]+{_NAME}"
)
_CLIENT = re.compile(rf"\bClient[ \t]*:[ \t]*{_NAME}", re.IGNORECASE)

_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_PHONE_LABELED = re.compile(
    r"\bT[ÉE]L(?:[ÉE]PHONE)?\.?[ \t]*:?[ \t]*(\d{2}(?:[ .-]?\d{2}){4})(?!\d)", re.IGNORECASE
)
_PHONE = re.compile(r"(?<!\d)(?:0|\+33|0033)[ ]?[1-9](?:[ .-]?\d{2}){4}(?!\d)")

_ADDRESS_VALUE = r"([A-Za-zÀ-ÿ0-9'][A-Za-zÀ-ÿ0-9' \t,.-]*)"
_ADDRESS_PATTERNS = (
    re.compile(rf"Adresse\s+client[ \t]*:?[ \t]*{_ADDRESS_VALUE}", re.IGNORECASE),
    re.compile(rf"Adresse[ \t]*:?[ \t]*{_ADDRESS_VALUE}", re.IGNORECASE),
    re.compile(rf"Domicili[ée][ \t]*(?:à|au)?[ \t]*:?[ \t]*{_ADDRESS_VALUE}", re.IGNORECASE),
    re.compile(rf"Domicile[ \t]*:?[ \t]*{_ADDRESS_VALUE}", re.IGNORECASE),
    re.compile(
        rf"Coordonn[ée]es[ \t]*:?[ \t]*(?:(?:\+33|0)[\d .]{{9,13}}[ \t,]*)?{_ADDRESS_VALUE}",
        re.IGNORECASE,
    ),
)
_POSTAL_CODE = re.compile(r"(?<!\d)\d{5}[ \t]+[A-Za-zÀ-ÿ][A-Za-zÀ-ÿ \t-]*$")
_NOT_ADDRESS = ("ASSURÉ", "Email", "Téléphone", "ASSURANCE")

_INSURER = (
    re.compile(r"(?:ASSURANCE|ASSUREUR|Compagnie)[ \t]*:[ \t]*([A-Za-zÀ-ÿ0-9][A-Za-zÀ-ÿ0-9 \t-]*)", re.IGNORECASE),
    re.compile(r"Assureur[ \t]*\n[ \t]*([A-Za-zÀ-ÿ0-9][A-Za-zÀ-ÿ0-9 \t-]*)", re.IGNORECASE),
)
_REFERENCE = r"((?=[A-Za-z-]*\d)[A-Za-z0-9-]+)"
_POLICY = re.compile(
    rf"(?:N[°o.]?[ \t]*(?:de[ \t]+)?police|police[ \t]*n[°o]?)[ \t]*:?[ \t]*{_REFERENCE}",
    re.IGNORECASE,
)
_CLAIM = re.compile(
    rf"(?:N[°o.]?[ \t]*(?:de[ \t]+)?sinistre|sinistre[ \t]*n[°o]?|R[ée]f\.?[ \t]+sinistre)"
    rf"[ \t]*:?[ \t]*{_REFERENCE}",
    re.IGNORECASE,
)
_INSURER_CONTACT = re.compile(
    r"(?:Gestionnaire|Interlocuteur|Contact\s+assureur)[ \t]*:[ \t]*([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ' \t.-]*)",
    re.IGNORECASE,
)


def _clean(value):
    return " ".join(value.split()).strip(" ,.-")


def _apply_name(client, full_name):
    client.first_name, client.last_name = split_person_name(full_name)
    if client.first_name == "Unknown":
        client.name = client.last_name
    else:
        client.name = f"{client.first_name} {client.last_name}"


def extract_client(context, document):
    doc = document.copy()
    for pattern in (_ASSURE, _ASSURE_NEXT_LINE, _CIVILITY, _CLIENT):
        match = pattern.search(context.text)
        if not match:
            continue
        full_name = _clean(match.group(1))
        if full_name:
            logger.debug("Assuré trouvé: %s", full_name)
            _apply_name(doc.client, full_name)
            return doc
    doc.client.first_name = "Unknown"
    doc.client.last_name = "Unknown"
    return doc


def extract_contact(context, document):
    doc = document.copy()
    email = _EMAIL.search(context.text)
    if email:
        doc.client.email = email.group(0)

    labeled = _PHONE_LABELED.search(context.text)
    if labeled:
        doc.client.phone = labeled.group(1).strip()
    else:
        phone = _PHONE.search(context.text)
        if phone:
            doc.client.phone = phone.group(0).strip()
    return doc


def _address_from_postal_code(lines):
    for index, line in enumerate(lines):
        if not _POSTAL_CODE.search(line.strip()):
            continue
        if index == 0:
            return None
        kept = []
        for candidate in lines[max(0, index - 3):index + 1]:
            candidate = candidate.strip()
            if not candidate:
                continue
            if any(label in candidate for label in _NOT_ADDRESS):
                continue
            if "police" in candidate.lower():
                continue
            kept.append(candidate)
        return ", ".join(kept) or None
    return None


def extract_address(context, document):
    doc = document.copy()
    for pattern in _ADDRESS_PATTERNS:
        match = pattern.search(context.text)
        if match:
            address = _clean(match.group(1))
            if address:
                doc.client.address = address
                return doc

    address = _address_from_postal_code(context.lines)
    if address:
        logger.debug("Adresse déduite du code postal: %s", address)
        doc.client.address = address
    return doc


def extract_insurer(context, document):
    doc = document.copy()
    text = context.text
    for pattern in _INSURER:
        match = pattern.search(text)
        if match:
            name = _clean(match.group(1))
            if name:
                doc.insurer.name = name
                break

    policy = _POLICY.search(text)
    if policy:
        doc.insurer.policy_number = policy.group(1)
    claim = _CLAIM.search(text)
    if claim:
        doc.insurer.claim_number = claim.group(1)
    contact = _INSURER_CONTACT.search(text)
    if contact:
        doc.insurer.contact = _clean(contact.group(1))
    return doc
