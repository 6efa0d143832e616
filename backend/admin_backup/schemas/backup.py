from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional, Tuple


class BoundaryRow(BaseModel):
    country_code: str = Field(..., min_length=2, max_length=2)
    admin_level: Optional[int] = None
    osm_type: Literal["relation", "way"]
    osm_id: int
    name: str = Field(..., min_length=1)
    tags: Dict[str, Any] = Field(default_factory=dict)
    center_geojson: str
    geom_geojson: str
    feature_properties: Dict[str, Any] = Field(default_factory=dict)
    raw_api_element: Optional[Dict[str, Any]] = None

    @property
    def key(self) -> Tuple[str, int]:
        """Identity of the row inside one backup file."""
        return (self.osm_type, self.osm_id)


class BackupMeta(BaseModel):
    created_at: Optional[str] = None
    refreshed_at: Optional[str] = None
    country_code: str
    level: int
    source: Literal["overpass"] = "overpass"
    format: Literal[2] = 2
    endpoint: str


class BackupRecord(BaseModel):
    meta: BackupMeta
    rows: List[BoundaryRow] = Field(default_factory=list)
    raw_api_response_file: Optional[str] = None
    raw_api_response_parts: Optional[List[str]] = None


class CountryItem(BaseModel):
    country_code: str
    name: Optional[str] = None
    name_en: Optional[str] = None
    int_name: Optional[str] = None
    official_name: Optional[str] = None
    tags: Dict[str, Any] = Field(default_factory=dict)


class CountriesMeta(BaseModel):
    created_at: Optional[str] = None
    refreshed_at: Optional[str] = None
    source: Literal["overpass"] = "overpass"
    format: Literal[1] = 1
    endpoint: str


class CountriesRecord(BaseModel):
    meta: CountriesMeta
    countries: List[CountryItem] = Field(default_factory=list)
    raw_api_response_file: Optional[str] = None


class CatalogMeta(BaseModel):
    created_at: Optional[str] = None
    refreshed_at: Optional[str] = None
    source: Literal["overpass"] = "overpass"
    format: Literal[1] = 1


class CatalogRecord(BaseModel):
    meta: CatalogMeta = Field(default_factory=CatalogMeta)
    levels_by_country: Dict[str, List[int]] = Field(default_factory=dict)


class BackupIndexItem(BaseModel):
    file: str
    country_code: Optional[str] = None
    level: Optional[int] = None
    rows: int = 0
    kind: Literal["admin_areas", "countries"]
    updated_at: str


class BackupIndex(BaseModel):
    count: int
    items: List[BackupIndexItem]
