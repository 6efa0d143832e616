"""Country and admin level discovery from Overpass tag-only responses."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from admin_backup.schemas.backup import CountryItem
from admin_backup.services.osm.overpass_client import OverpassClient
from admin_backup.services.osm.query_builder import DEFAULT_QUERY_TIMEOUT, build_country_levels_query
from admin_backup.services.utils import normalize_country_code, parse_positive_int

logger = logging.getLogger(__name__)


def _element_tags(payload: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    elements = payload.get("elements") if isinstance(payload, dict) else None
    if not isinstance(elements, list):
        return
    for element in elements:
        if isinstance(element, dict) and isinstance(element.get("tags"), dict):
            yield element["tags"]


def _to_name(value: Any) -> Optional[str]:
    name = str(value if value is not None else "").strip()
    return name or None


def extract_countries(payload: Dict[str, Any]) -> List[CountryItem]:
    """
    Extract country entries (code, names, tags) from an all-countries response.

    Args:
        payload: Parsed Overpass JSON response

    Returns:
        Countries sorted by code; the last element wins for duplicate codes
    """
    by_code: Dict[str, CountryItem] = {}
    for tags in _element_tags(payload):
        code = normalize_country_code(tags.get("ISO3166-1"))
        if not code:
            continue
        by_code[code] = CountryItem(
            country_code=code,
            name=_to_name(tags.get("name")),
            name_en=_to_name(tags.get("name:en")),
            int_name=_to_name(tags.get("int_name")),
            official_name=_to_name(tags.get("official_name")),
            tags=tags,
        )
    return [by_code[code] for code in sorted(by_code)]


def extract_admin_levels(payload: Dict[str, Any]) -> List[int]:
    """Sorted unique positive admin_level values found in the element tags."""
    levels = set()
    for tags in _element_tags(payload):
        level = parse_positive_int(tags.get("admin_level"))
        if level is not None:
            levels.add(level)
    return sorted(levels)


class LevelDiscovery:
    """Finds which admin levels exist inside a country."""

    def __init__(self, client: OverpassClient, query_timeout: int = DEFAULT_QUERY_TIMEOUT):
        self.client = client
        self.query_timeout = query_timeout

    def discover_levels(self, country_code: str) -> List[int]:
        """
        Query Overpass for every administrative relation in the country and collect admin levels.

        Args:
            country_code: 2-letter ISO code

        Returns:
            Sorted unique list of levels, empty if none were found

        Raises:
            FetchFailed: If the discovery query failed on all endpoints
        """
        result = self.client.fetch(build_country_levels_query(country_code, timeout=self.query_timeout))
        levels = extract_admin_levels(result.data)
        logger.info(f"Discovered admin levels for {country_code}: {levels} (endpoint={result.endpoint})")
        return levels
