"""Transform Overpass boundary payloads into normalized backup rows."""

import json
import logging
import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from admin_backup.schemas.backup import BoundaryRow
from admin_backup.services.osm.boundary_parser import BoundaryParser
from admin_backup.services.utils import parse_positive_int

logger = logging.getLogger(__name__)

RowKey = Tuple[str, int]

_TRAILING_DIGITS_RE = re.compile(r"(\d+)\s*$")

# Keys added by the geometry conversion step, not OSM tags
_META_PROPERTY_KEYS = {"center", "center_lon", "center_lat", "id", "osm_id"}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def normalize_multipolygon(geometry: Any) -> Optional[Dict[str, Any]]:
    """
    Bring a GeoJSON geometry into MultiPolygon form.

    Args:
        geometry: GeoJSON geometry dictionary (may be None or irregular)

    Returns:
        MultiPolygon geometry, or None for any other geometry type
    """
    if not isinstance(geometry, dict):
        return None

    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geometry_type == "MultiPolygon":
        return {"type": "MultiPolygon", "coordinates": coordinates}
    if geometry_type == "Polygon":
        return {"type": "MultiPolygon", "coordinates": [coordinates]}
    return None


def parse_osm_id(properties: Dict[str, Any], feature_id: Any = None) -> Optional[int]:
    """
    Resolve the numeric OSM id of a feature.

    Checks ``id``, ``@id`` and ``osm_id`` properties, then the feature id.
    Numbers are taken as is, strings such as ``relation/123`` give their trailing digits.
    """
    for candidate in (properties.get("id"), properties.get("@id"), properties.get("osm_id"), feature_id):
        if candidate is None or isinstance(candidate, bool):
            continue
        if isinstance(candidate, int):
            return candidate
        if isinstance(candidate, float) and math.isfinite(candidate) and candidate.is_integer():
            return int(candidate)
        if isinstance(candidate, str):
            match = _TRAILING_DIGITS_RE.search(candidate)
            if match:
                return int(match.group(1))
    return None


def parse_osm_type(properties: Dict[str, Any]) -> str:
    """Entity type of a feature, ``way`` only when explicitly marked, else ``relation``."""
    for candidate in (properties.get("@type"), properties.get("type")):
        if str(candidate or "").strip().lower() == "way":
            return "way"
    return "relation"


def derive_center(multipolygon: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Average of the vertices of the first ring of the first polygon.

    Args:
        multipolygon: Normalized MultiPolygon geometry

    Returns:
        GeoJSON Point, or None if the ring has no usable coordinates
    """
    polygons = multipolygon.get("coordinates")
    if not isinstance(polygons, list) or not polygons:
        return None

    first_polygon = polygons[0]
    if not isinstance(first_polygon, list) or not first_polygon:
        return None

    ring = first_polygon[0]
    if not isinstance(ring, list) or not ring:
        return None

    sum_lon = 0.0
    sum_lat = 0.0
    count = 0
    for point in ring:
        if not isinstance(point, (list, tuple)) or len(point) < 2:
            continue
        lon, lat = point[0], point[1]
        if _is_number(lon) and _is_number(lat):
            sum_lon += lon
            sum_lat += lat
            count += 1

    if count == 0:
        return None
    return {"type": "Point", "coordinates": [sum_lon / count, sum_lat / count]}


def pick_center(properties: Dict[str, Any], multipolygon: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Explicit center Point, then center_lon/center_lat, then the derived ring average."""
    center = properties.get("center")
    if isinstance(center, dict) and center.get("type") == "Point":
        coordinates = center.get("coordinates")
        if (
            isinstance(coordinates, (list, tuple))
            and len(coordinates) >= 2
            and _is_number(coordinates[0])
            and _is_number(coordinates[1])
        ):
            return {"type": "Point", "coordinates": [coordinates[0], coordinates[1]]}

    lon = properties.get("center_lon")
    lat = properties.get("center_lat")
    if _is_number(lon) and _is_number(lat):
        return {"type": "Point", "coordinates": [lon, lat]}

    return derive_center(multipolygon)


def feature_tags(properties: Dict[str, Any]) -> Dict[str, Any]:
    """
    OSM tags of a feature.

    Supports both nested (``properties["tags"]``) and flat property layouts;
    for flat layouts the converter's own keys (``@id``, ``@type``, center) are left out.
    """
    nested = properties.get("tags")
    if isinstance(nested, dict):
        return dict(nested)
    return {
        key: value
        for key, value in properties.items()
        if not str(key).startswith("@") and key not in _META_PROPERTY_KEYS
    }


def build_element_index(elements: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
    """Index raw Overpass elements by ``"{type}/{id}"``."""
    index: Dict[str, Dict[str, Any]] = {}
    for element in elements:
        if not isinstance(element, dict):
            continue
        element_type = element.get("type")
        element_id = element.get("id")
        if not isinstance(element_type, str) or not element_type:
            continue
        if isinstance(element_id, bool):
            continue
        if isinstance(element_id, str) and element_id.strip().isdigit():
            element_id = int(element_id.strip())
        if not isinstance(element_id, int):
            continue
        index[f"{element_type.lower()}/{element_id}"] = element
    return index


def merge_rows(accumulator: Dict[RowKey, BoundaryRow], rows: Iterable[BoundaryRow]) -> Dict[RowKey, BoundaryRow]:
    """
    Merge rows into an ordered map keyed by (osm_type, osm_id); later rows win.

    Args:
        accumulator: Map to merge into (modified in place)
        rows: Rows to add

    Returns:
        The accumulator
    """
    for row in rows:
        accumulator[row.key] = row
    return accumulator


class RowTransformer:
    """Turns Overpass boundary payloads into BoundaryRow records."""

    def __init__(self, converter: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None):
        """
        Initialize row transformer.

        Args:
            converter: Overpass JSON -> GeoJSON FeatureCollection function.
                Defaults to BoundaryParser.parse_feature_collection
        """
        self.converter = converter or BoundaryParser().parse_feature_collection

    def to_rows(self, country_code: str, level: int, payload: Dict[str, Any]) -> List[BoundaryRow]:
        """
        Convert one Overpass payload into boundary rows.

        Features without a name, non-administrative boundaries, non-polygonal
        geometries, features without an id and features without a center are skipped.

        Args:
            country_code: Country the rows belong to
            level: Requested admin level, used when a feature has no usable admin_level tag
            payload: Parsed Overpass JSON response

        Returns:
            Rows unique by (osm_type, osm_id), later duplicates replacing earlier ones
        """
        feature_collection = self.converter(payload) or {}
        features = feature_collection.get("features") if isinstance(feature_collection, dict) else None
        if not isinstance(features, list):
            features = []

        elements = payload.get("elements") if isinstance(payload, dict) else None
        element_index = build_element_index(elements if isinstance(elements, list) else [])

        rows: Dict[RowKey, BoundaryRow] = {}
        skipped = 0
        for feature in features:
            row = self._feature_to_row(country_code, level, feature, element_index)
            if row is None:
                skipped += 1
                continue
            rows[row.key] = row

        logger.info(
            f"Transformed {len(features)} features into {len(rows)} rows "
            f"for {country_code} L{level} ({skipped} skipped)"
        )
        return list(rows.values())

    def _feature_to_row(
        self,
        country_code: str,
        level: int,
        feature: Any,
        element_index: Dict[str, Dict[str, Any]],
    ) -> Optional[BoundaryRow]:
        if not isinstance(feature, dict):
            return None

        properties = feature.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        tags = feature_tags(properties)

        name = str(tags.get("name") if tags.get("name") is not None else "").strip()
        if not name:
            return None

        boundary = tags.get("boundary")
        if boundary and boundary != "administrative":
            return None

        geometry = normalize_multipolygon(feature.get("geometry"))
        if geometry is None:
            return None

        osm_id = parse_osm_id(properties, feature.get("id"))
        if osm_id is None:
            return None

        osm_type = parse_osm_type(properties)

        center = pick_center(properties, geometry)
        if center is None:
            return None

        admin_level = parse_positive_int(tags.get("admin_level"))
        if admin_level is None:
            admin_level = level

        return BoundaryRow(
            country_code=country_code,
            admin_level=admin_level,
            osm_type=osm_type,
            osm_id=osm_id,
            name=name,
            tags=tags,
            center_geojson=_dumps(center),
            geom_geojson=_dumps(geometry),
            feature_properties=properties,
            raw_api_element=element_index.get(f"{osm_type}/{osm_id}"),
        )
