"""Overpass QL query builders for administrative boundaries."""

DEFAULT_QUERY_TIMEOUT = 180


def _country_area(country_code: str) -> str:
    return f'area["ISO3166-1"="{country_code}"]["admin_level"="2"]->.country;'


def build_all_countries_query(timeout: int = DEFAULT_QUERY_TIMEOUT) -> str:
    """
    Build query for every top-level country relation.

    Returns:
        Overpass QL query string returning tags of all admin_level=2
        relations that carry an ISO3166-1 code
    """
    return f"""
[out:json][timeout:{timeout}];
relation["boundary"="administrative"]["admin_level"="2"]["ISO3166-1"];
out tags;
"""


def build_country_levels_query(country_code: str, timeout: int = DEFAULT_QUERY_TIMEOUT) -> str:
    """
    Build tags-only query listing all administrative relations inside a country.
    Used to discover which admin levels exist there.

    Args:
        country_code: 2-letter ISO code (already uppercased by the caller)
        timeout: Overpass server-side timeout in seconds

    Returns:
        Overpass QL query string
    """
    return f"""
[out:json][timeout:{timeout}];
{_country_area(country_code)}
(
  relation["boundary"="administrative"]["admin_level"](area.country);
);
out tags;
"""


def build_admin_level_query(
    country_code: str,
    admin_level: int,
    tags_only: bool = False,
    timeout: int = DEFAULT_QUERY_TIMEOUT,
) -> str:
    """
    Build query for all boundary relations at one admin level inside a country.

    Args:
        country_code: 2-letter ISO code
        admin_level: OSM admin_level value
        tags_only: If True only ids and tags are returned (used to list chunk parents)
        timeout: Overpass server-side timeout in seconds

    Returns:
        Overpass QL query string
    """
    output = "out tags;" if tags_only else "out body geom;"
    return f"""
[out:json][timeout:{timeout}];
{_country_area(country_code)}
(
  relation["boundary"="administrative"]["admin_level"="{admin_level}"](area.country);
);
{output}
"""


def build_parent_scoped_query(
    parent_relation_id: int,
    admin_level: int,
    timeout: int = DEFAULT_QUERY_TIMEOUT,
) -> str:
    """
    Build query for boundary relations at one admin level inside a parent relation.
    The parent relation is converted to an area first.

    Args:
        parent_relation_id: OSM relation ID of the parent boundary
        admin_level: OSM admin_level value to fetch
        timeout: Overpass server-side timeout in seconds

    Returns:
        Overpass QL query string
    """
    return f"""
[out:json][timeout:{timeout}];
relation({parent_relation_id});
map_to_area -> .parent;
(
  relation["boundary"="administrative"]["admin_level"="{admin_level}"](area.parent);
);
out body geom;
"""
