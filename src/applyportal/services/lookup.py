"""Reference data catalogs (countries, regions, programs, ...).

Built-in defaults can be overridden per catalog by a YAML file
(config key: lookups.path) shaped as {catalog_name: [ {id: ...}, ... ]}.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from applyportal.core.config import ConfigResolver
from applyportal.core.errors import ConfigError, NotFoundError
from applyportal.core.logging import get_logger

logger = get_logger(__name__)

CANADA_COUNTRY_ID = "CAN"
USA_COUNTRY_ID = "USA"

DEFAULT_CATALOGS: dict[str, list[dict[str, Any]]] = {
    "countries": [
        {"id": CANADA_COUNTRY_ID, "name_en": "Canada", "name_fr": "Canada"},
        {"id": USA_COUNTRY_ID, "name_en": "United States", "name_fr": "Etats-Unis"},
        {"id": "FRA", "name_en": "France", "name_fr": "France"},
        {"id": "GBR", "name_en": "United Kingdom", "name_fr": "Royaume-Uni"},
    ],
    "regions": [
        {"id": "AB", "country_id": CANADA_COUNTRY_ID, "name_en": "Alberta", "postal_prefixes": "T"},
        {"id": "BC", "country_id": CANADA_COUNTRY_ID, "name_en": "British Columbia", "postal_prefixes": "V"},
        {"id": "MB", "country_id": CANADA_COUNTRY_ID, "name_en": "Manitoba", "postal_prefixes": "R"},
        {"id": "NB", "country_id": CANADA_COUNTRY_ID, "name_en": "New Brunswick", "postal_prefixes": "E"},
        {"id": "NL", "country_id": CANADA_COUNTRY_ID, "name_en": "Newfoundland and Labrador", "postal_prefixes": "A"},
        {"id": "NS", "country_id": CANADA_COUNTRY_ID, "name_en": "Nova Scotia", "postal_prefixes": "B"},
        {"id": "NT", "country_id": CANADA_COUNTRY_ID, "name_en": "Northwest Territories", "postal_prefixes": "X"},
        {"id": "NU", "country_id": CANADA_COUNTRY_ID, "name_en": "Nunavut", "postal_prefixes": "X"},
        {"id": "ON", "country_id": CANADA_COUNTRY_ID, "name_en": "Ontario", "postal_prefixes": "KLMNP"},
        {"id": "PE", "country_id": CANADA_COUNTRY_ID, "name_en": "Prince Edward Island", "postal_prefixes": "C"},
        {"id": "QC", "country_id": CANADA_COUNTRY_ID, "name_en": "Quebec", "postal_prefixes": "GHJ"},
        {"id": "SK", "country_id": CANADA_COUNTRY_ID, "name_en": "Saskatchewan", "postal_prefixes": "S"},
        {"id": "YT", "country_id": CANADA_COUNTRY_ID, "name_en": "Yukon", "postal_prefixes": "Y"},
        {"id": "NY", "country_id": USA_COUNTRY_ID, "name_en": "New York"},
        {"id": "WA", "country_id": USA_COUNTRY_ID, "name_en": "Washington"},
    ],
    "marital_statuses": [
        {"id": "single", "name_en": "Single"},
        {"id": "married", "name_en": "Married"},
        {"id": "common-law", "name_en": "Common-law"},
        {"id": "separated", "name_en": "Separated"},
        {"id": "divorced", "name_en": "Divorced"},
        {"id": "widowed", "name_en": "Widowed"},
    ],
    "preferred_languages": [
        {"id": "en", "name_en": "English"},
        {"id": "fr", "name_en": "French"},
    ],
    "preferred_communication_methods": [
        {"id": "email", "name_en": "Email"},
        {"id": "mail", "name_en": "Mail"},
    ],
    "federal_social_programs": [
        {"id": "nihb", "name_en": "Non-Insured Health Benefits Program"},
        {"id": "ifhp", "name_en": "Interim Federal Health Program"},
        {"id": "vac", "name_en": "Veterans Affairs Canada"},
    ],
    "provincial_territorial_social_programs": [
        {"id": "on-odsp", "region_id": "ON", "name_en": "Ontario Disability Support Program"},
        {"id": "on-ow", "region_id": "ON", "name_en": "Ontario Works"},
        {"id": "qc-sa", "region_id": "QC", "name_en": "Social Assistance Program"},
        {"id": "bc-hap", "region_id": "BC", "name_en": "Healthy Kids Program"},
        {"id": "ab-ahcip", "region_id": "AB", "name_en": "Alberta Adult Health Benefit"},
    ],
}


class LookupService:
    """Read-only access to reference data catalogs."""

    def __init__(self, catalogs: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self._catalogs = deepcopy(DEFAULT_CATALOGS if catalogs is None else catalogs)

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver) -> LookupService:
        path = resolver.resolve_str("lookups.path", "")
        catalogs = deepcopy(DEFAULT_CATALOGS)
        if path:
            catalogs.update(load_catalog_file(Path(path)))
            logger.verbose(f"Loaded lookup overrides from {path}")
        return cls(catalogs)

    def names(self) -> list[str]:
        return sorted(self._catalogs)

    def get_all(self, catalog: str) -> list[dict[str, Any]]:
        try:
            return deepcopy(self._catalogs[catalog])
        except KeyError:
            raise NotFoundError(f"Unknown lookup catalog '{catalog}'") from None

    def ids(self, catalog: str) -> set[str]:
        return {str(item["id"]) for item in self._catalogs.get(catalog, [])}

    def find(self, catalog: str, item_id: str) -> dict[str, Any] | None:
        for item in self._catalogs.get(catalog, []):
            if str(item.get("id")) == item_id:
                return dict(item)
        return None

    def regions_for(self, country_id: str) -> list[dict[str, Any]]:
        return [r for r in self.get_all("regions") if r.get("country_id") == country_id]

    def programs_for_region(self, region_id: str) -> list[dict[str, Any]]:
        return [
            p
            for p in self.get_all("provincial_territorial_social_programs")
            if p.get("region_id") == region_id
        ]


def load_catalog_file(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Load catalog overrides from YAML.

    Raises:
        ConfigError: If file cannot be read or is not shaped as expected.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}: {e}",
            suggestion="Check YAML syntax (indentation, colons, quotes)",
        ) from e
    except OSError as e:
        raise ConfigError(f"Failed to read lookups file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Lookups file {path} must contain a mapping of catalogs")

    out: dict[str, list[dict[str, Any]]] = {}
    for name, items in data.items():
        if not isinstance(items, list) or not all(
            isinstance(i, dict) and "id" in i for i in items
        ):
            raise ConfigError(f"Catalog '{name}' in {path} must be a list of mappings with 'id'")
        out[str(name)] = [dict(i) for i in items]
    return out
