"""Persisted map of discovered admin levels per country (country-levels.json)."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from admin_backup.schemas.backup import CatalogRecord
from admin_backup.services.backup.backup_reader import read_json
from admin_backup.services.backup.backup_writer import BackupWriter
from admin_backup.services.backup.paths import PathLike
from admin_backup.services.utils import normalize_country_code, parse_positive_int

logger = logging.getLogger(__name__)


def _normalize_levels(values: Iterable[Any]) -> List[int]:
    levels = {parse_positive_int(value) for value in values}
    levels.discard(None)
    return sorted(levels)


class LevelCatalog:
    """Levels known per country, owned by a single backup run."""

    def __init__(self, levels_by_country: Optional[Dict[str, List[int]]] = None):
        self._levels: Dict[str, List[int]] = dict(levels_by_country or {})
        self._changed = False

    @property
    def changed(self) -> bool:
        return self._changed

    def get(self, country_code: str) -> Optional[List[int]]:
        levels = self._levels.get(country_code)
        return list(levels) if levels else None

    def record(self, country_code: str, levels: Iterable[Any]) -> None:
        normalized = _normalize_levels(levels)
        if not normalized or self._levels.get(country_code) == normalized:
            return
        self._levels[country_code] = normalized
        self._changed = True

    def to_record(self) -> CatalogRecord:
        return CatalogRecord(levels_by_country={cc: self._levels[cc] for cc in sorted(self._levels)})


def load_catalog(path: PathLike) -> LevelCatalog:
    """
    Load the level catalog, dropping invalid entries.

    Args:
        path: Catalog file path

    Returns:
        LevelCatalog, empty when the file is missing or corrupt
    """
    document = read_json(path)
    raw = document.get("levels_by_country") if isinstance(document, dict) else None
    if not isinstance(raw, dict):
        return LevelCatalog()

    levels_by_country: Dict[str, List[int]] = {}
    for key, value in raw.items():
        code = normalize_country_code(key)
        if not code or not isinstance(value, list):
            continue
        levels = _normalize_levels(value)
        if levels:
            levels_by_country[code] = levels

    logger.debug(f"Loaded level catalog with {len(levels_by_country)} countries from {path}")
    return LevelCatalog(levels_by_country)


def save_catalog(path: PathLike, catalog: LevelCatalog, writer: BackupWriter) -> None:
    """Write the catalog uncompressed, keeping its original created_at."""
    writer.write(path, catalog.to_record(), compress=False)
