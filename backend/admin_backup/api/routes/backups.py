"""Read-only endpoints over the backup data directory."""

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from admin_backup.api.deps import get_data_dir
from admin_backup.schemas.backup import BackupIndex
from admin_backup.services.backup.backup_reader import list_backups, load_backup, load_countries
from admin_backup.services.utils import normalize_country_code, parse_positive_int

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Backups"])


def _validated_target(country: Optional[str], level: Any):
    country_code = normalize_country_code(country)
    if country_code is None:
        raise HTTPException(status_code=400, detail="country must be a 2-letter ISO code")
    admin_level = parse_positive_int(level)
    if admin_level is None:
        raise HTTPException(status_code=400, detail="level must be a positive integer")
    return country_code, admin_level


def _admin_areas(data_dir: Path, country: Optional[str], level: Any):
    country_code, admin_level = _validated_target(country, level)
    document = load_backup(data_dir, country_code, admin_level)
    if document is None:
        raise HTTPException(
            status_code=404,
            detail=f"No backup for country={country_code} level={admin_level}",
        )
    return document


@router.get("/countries", summary="Stored country list")
def get_countries(data_dir: Path = Depends(get_data_dir)):
    document = load_countries(data_dir)
    if document is None:
        raise HTTPException(status_code=404, detail="countries.json not found")
    return document


@router.get("/backups", response_model=BackupIndex, summary="List stored backups")
def get_backups(data_dir: Path = Depends(get_data_dir)):
    """
    List every admin area backup and the countries record.

    Returns:
        Count and items with file, country, level, row count, kind and mtime
    """
    return list_backups(data_dir)


@router.get("/admin-areas", summary="Stored admin areas of one country and level")
def get_admin_areas(
    country: Optional[str] = Query(None, description="2-letter ISO code, e.g. EE"),
    level: Optional[str] = Query(None, description="OSM admin_level, e.g. 2"),
    data_dir: Path = Depends(get_data_dir),
):
    return _admin_areas(data_dir, country, level)


@router.get("/admin-areas/{country}/{level}", summary="Stored admin areas of one country and level")
def get_admin_areas_by_path(country: str, level: str, data_dir: Path = Depends(get_data_dir)):
    return _admin_areas(data_dir, country, level)
