"""OSM boundary parser for converting Overpass JSON elements into GeoJSON features."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from shapely.geometry import LineString, MultiPolygon, Polygon
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry
from shapely.ops import polygonize, unary_union

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class BoundaryParser:
    """Parser for Overpass API JSON output (``out body geom``/``out tags``/``out center``)."""

    def parse_feature_collection(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert an Overpass JSON payload into a GeoJSON FeatureCollection.

        Relations become (Multi)Polygons assembled from their member way geometries,
        closed ways become Polygons, open ways LineStrings and tagged nodes Points.
        Elements without usable geometry are kept with ``geometry: None`` so callers
        still see their tags.

        Args:
            payload: Parsed Overpass JSON response

        Returns:
            GeoJSON FeatureCollection dictionary
        """
        elements = payload.get("elements") if isinstance(payload, dict) else None
        if not isinstance(elements, list):
            elements = []

        features = []
        for element in elements:
            if not isinstance(element, dict):
                continue
            feature = self._element_to_feature(element)
            if feature is not None:
                features.append(feature)

        logger.debug(f"Converted {len(elements)} Overpass elements into {len(features)} features")
        return {"type": "FeatureCollection", "features": features}

    def _element_to_feature(self, element: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        element_type = str(element.get("type") or "").lower()
        element_id = element.get("id")
        tags = element.get("tags") if isinstance(element.get("tags"), dict) else {}

        if element_type == "relation":
            geometry = self._relation_geometry(element)
        elif element_type == "way":
            geometry = self._way_geometry(element)
        elif element_type == "node":
            # Untagged nodes are only vertices of ways
            if not tags:
                return None
            geometry = self._node_geometry(element)
        else:
            return None

        properties: Dict[str, Any] = dict(tags)
        properties["@id"] = f"{element_type}/{element_id}"
        properties["@type"] = element_type

        center = element.get("center")
        if isinstance(center, dict) and _is_number(center.get("lon")) and _is_number(center.get("lat")):
            properties["center"] = {"type": "Point", "coordinates": [center["lon"], center["lat"]]}

        return {
            "type": "Feature",
            "id": f"{element_type}/{element_id}",
            "properties": properties,
            "geometry": geometry,
        }

    def _node_geometry(self, element: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        lon, lat = element.get("lon"), element.get("lat")
        if _is_number(lon) and _is_number(lat):
            return {"type": "Point", "coordinates": [lon, lat]}
        return None

    def _way_geometry(self, element: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        coordinates = _geometry_points(element.get("geometry"))
        if len(coordinates) < 2:
            return None

        if len(coordinates) >= 4 and coordinates[0] == coordinates[-1]:
            return {"type": "Polygon", "coordinates": [[list(c) for c in coordinates]]}
        return {"type": "LineString", "coordinates": [list(c) for c in coordinates]}

    def _relation_geometry(self, element: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        members = element.get("members")
        if not isinstance(members, list):
            return None

        outer_lines: List[LineString] = []
        inner_lines: List[LineString] = []

        for member in members:
            if not isinstance(member, dict) or member.get("type") != "way":
                continue

            coordinates = _geometry_points(member.get("geometry"))
            if len(coordinates) < 2:
                continue

            role = member.get("role") or "outer"
            if role == "outer":
                outer_lines.append(LineString(coordinates))
            elif role == "inner":
                inner_lines.append(LineString(coordinates))

        if not outer_lines:
            return None

        try:
            area = self._assemble_rings(outer_lines)
            if area is None:
                return None

            if inner_lines:
                holes = self._assemble_rings(inner_lines)
                if holes is not None:
                    area = area.difference(holes)
        except (GEOSException, ValueError) as e:
            # Broken member geometry (self intersections, dangling ways) yields no polygon
            logger.warning(f"Failed to assemble rings for relation {element.get('id')}: {str(e)}")
            return None

        return _polygonal_to_geojson(area)

    def _assemble_rings(self, lines: List[LineString]) -> Optional[BaseGeometry]:
        """
        Merge way segments into closed rings and polygons.

        Ways of a boundary relation are connected end to end; noding them with
        unary_union and polygonizing yields one face per closed ring.

        Args:
            lines: Member way geometries

        Returns:
            Polygon or MultiPolygon covering all closed rings, or None if no ring closes
        """
        polygons = [p for p in polygonize(unary_union(lines)) if not p.is_empty]
        if not polygons:
            return None
        return unary_union(polygons)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _geometry_points(geometry: Any) -> List[Coordinate]:
    """Overpass ``geometry`` list of {lat, lon} into (lon, lat) tuples, skipping gaps."""
    if not isinstance(geometry, list):
        return []

    points: List[Coordinate] = []
    for point in geometry:
        if not isinstance(point, dict):
            continue
        lon, lat = point.get("lon"), point.get("lat")
        if _is_number(lon) and _is_number(lat):
            points.append((float(lon), float(lat)))
    return points


def _polygon_coordinates(polygon: Polygon) -> List[List[List[float]]]:
    rings = [polygon.exterior, *polygon.interiors]
    return [[[x, y] for x, y, *_ in ring.coords] for ring in rings]


def _polygonal_to_geojson(geometry: BaseGeometry) -> Optional[Dict[str, Any]]:
    if geometry is None or geometry.is_empty:
        return None

    if isinstance(geometry, Polygon):
        return {"type": "Polygon", "coordinates": _polygon_coordinates(geometry)}

    if isinstance(geometry, MultiPolygon):
        return {
            "type": "MultiPolygon",
            "coordinates": [_polygon_coordinates(p) for p in geometry.geoms],
        }

    # difference() may return a GeometryCollection with stray lines, keep the polygons
    polygons = [g for g in getattr(geometry, "geoms", []) if isinstance(g, Polygon) and not g.is_empty]
    if not polygons:
        return None
    if len(polygons) == 1:
        return {"type": "Polygon", "coordinates": _polygon_coordinates(polygons[0])}
    return {"type": "MultiPolygon", "coordinates": [_polygon_coordinates(p) for p in polygons]}
