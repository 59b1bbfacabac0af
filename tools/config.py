"""
config.py — Chargement des paramètres d'extraction.

Lit la section ``extraction:`` de config.yaml puis applique les
surcharges d'environnement (EXPERTISE_*).
"""

import logging
import os
from dataclasses import fields, replace

import yaml

from domain.models import ExtractionSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config.yaml"
)

ENV_OVERRIDES = {
    "EXPERTISE_TAX_RATE": "tax_rate",
    "EXPERTISE_DEFAULT_LABOR_RATE": "default_labor_rate",
    "EXPERTISE_DEFAULT_SUPPLIES": "default_supplies_amount",
    "EXPERTISE_OCR_LANG": "ocr_lang",
}


class ConfigError(ValueError):
    """Invalid extraction configuration."""


def _coerce(name: str, value, expected: type):
    if expected is str:
        return str(value)
    try:
        coerced = expected(str(value).replace(",", "."))
    except ValueError as e:
        raise ConfigError(f"Valeur invalide pour {name}: {value!r}") from e
    if coerced < 0:
        raise ConfigError(f"Valeur négative pour {name}: {value!r}")
    return coerced


def _types() -> dict:
    defaults = ExtractionSettings()
    return {f.name: type(getattr(defaults, f.name)) for f in fields(ExtractionSettings)}


def load_settings(path: str | None = None) -> ExtractionSettings:
    """Build ExtractionSettings from YAML file and environment.

    A missing file yields the defaults; unknown keys or invalid values
    raise ConfigError.
    """
    path = path or os.environ.get("EXPERTISE_CONFIG", DEFAULT_CONFIG_PATH)
    types = _types()
    values = {}

    if os.path.exists(path):
        with open(path, encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"YAML invalide dans {path}: {e}") from e
        if not isinstance(config, dict):
            raise ConfigError(f"{path}: un mapping est attendu")
        section = config.get("extraction") or {}
        if not isinstance(section, dict):
            raise ConfigError(f"{path}: la section 'extraction' doit être un mapping")
        for key, value in section.items():
            if key not in types:
                raise ConfigError(f"Paramètre inconnu dans {path}: {key}")
            values[key] = _coerce(key, value, types[key])
        logger.info("Configuration chargée depuis %s", path)
    else:
        logger.debug("Pas de fichier %s, valeurs par défaut", path)

    for env_name, key in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw:
            values[key] = _coerce(env_name, raw, types[key])

    settings = replace(ExtractionSettings(), **values)
    if settings.tax_rate >= 1:
        # 20 means 20 %
        settings = replace(settings, tax_rate=settings.tax_rate / 100)
    return settings
