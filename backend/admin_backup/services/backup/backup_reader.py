"""Read-only access to backup artifacts in the data directory."""

import gzip
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from admin_backup.schemas.backup import BackupIndex, BackupIndexItem
from admin_backup.services.backup.paths import (
    BACKUP_FILE_RE,
    COUNTRIES_FILE,
    PathLike,
    backup_file_path,
    compressed_path,
)

logger = logging.getLogger(__name__)


def read_json(path: PathLike) -> Optional[Any]:
    """
    Load a JSON artifact, decompressing ``.gz`` files in memory.

    Args:
        path: File path

    Returns:
        Parsed document, or None if the file is missing, unreadable or corrupt
    """
    path = Path(path)
    if not path.is_file():
        return None
    try:
        data = path.read_bytes()
        if path.name.endswith(".gz"):
            data = gzip.decompress(data)
        return json.loads(data.decode("utf-8"))
    except (OSError, EOFError, UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable artifact {path}: {str(e)}")
        return None


def _mtime_iso(path: Path) -> str:
    modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    return modified.isoformat().replace("+00:00", "Z")


def _row_count(document: Any, key: str) -> int:
    if isinstance(document, dict) and isinstance(document.get(key), list):
        return len(document[key])
    return 0


def load_backup(data_dir: PathLike, country_code: str, level: int) -> Optional[Any]:
    """Stored backup record for (country, level); the plain file wins over ``.gz``."""
    path = backup_file_path(data_dir, country_code, level)
    document = read_json(path)
    if document is None:
        document = read_json(compressed_path(path))
    return document


def load_countries(data_dir: PathLike) -> Optional[Any]:
    return read_json(Path(data_dir) / COUNTRIES_FILE)


def list_backups(data_dir: PathLike) -> BackupIndex:
    """
    Index every admin area backup plus the countries record.

    A backup present both plain and compressed is listed once, under the plain name.

    Args:
        data_dir: Backup directory

    Returns:
        BackupIndex sorted by file name
    """
    data_dir = Path(data_dir)
    items: List[BackupIndexItem] = []
    if not data_dir.is_dir():
        return BackupIndex(count=0, items=items)

    names = sorted(p.name for p in data_dir.iterdir() if p.is_file())
    for name in names:
        path = data_dir / name
        if name == COUNTRIES_FILE:
            items.append(
                BackupIndexItem(
                    file=name,
                    rows=_row_count(read_json(path), "countries"),
                    kind="countries",
                    updated_at=_mtime_iso(path),
                )
            )
            continue

        match = BACKUP_FILE_RE.match(name)
        if not match:
            continue
        if match.group(3) and name[: -len(".gz")] in names:
            continue
        items.append(
            BackupIndexItem(
                file=name,
                country_code=match.group(1),
                level=int(match.group(2)),
                rows=_row_count(read_json(path), "rows"),
                kind="admin_areas",
                updated_at=_mtime_iso(path),
            )
        )

    return BackupIndex(count=len(items), items=items)
