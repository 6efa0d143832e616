"""OSM (OpenStreetMap) boundary fetching and conversion services."""

from admin_backup.services.osm.overpass_client import OverpassClient, OverpassResult
from admin_backup.services.osm.row_transformer import RowTransformer

__all__ = ["OverpassClient", "OverpassResult", "RowTransformer"]
