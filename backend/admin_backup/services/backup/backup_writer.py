"""Durable writes of backup records and raw side-car files."""

import gzip
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel

from admin_backup.services.backup.backup_reader import read_json
from admin_backup.services.backup.paths import BACKUP_FILE_RE, PathLike, compressed_path, ensure_dir
from admin_backup.services.utils import iso_utc_now

logger = logging.getLogger(__name__)

GZIP_LEVEL = 9


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """Write to a temporary sibling, then rename it over ``path``."""
    path = Path(path)
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


def gzip_bytes(data: bytes) -> bytes:
    # mtime=0 keeps the archive identical for identical content
    return gzip.compress(data, compresslevel=GZIP_LEVEL, mtime=0)


def serialize_record(record: BaseModel) -> bytes:
    document = record.model_dump(mode="json")
    return (json.dumps(document, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


class BackupWriter:
    """Writes records while preserving their original creation timestamp."""

    def __init__(self, run_started_at: Optional[str] = None, now: Callable[[], str] = iso_utc_now):
        """
        Initialize backup writer.

        Args:
            run_started_at: Fallback created_at for records written for the first time
            now: Clock used for refreshed_at
        """
        self._now = now
        self.run_started_at = run_started_at or now()

    def resolve_created_at(self, path: PathLike) -> str:
        """
        created_at of the artifact already stored at ``path`` or ``path.gz``.

        Args:
            path: Uncompressed artifact path

        Returns:
            Stored created_at, or the run start timestamp if there is none
        """
        for candidate in (Path(path), compressed_path(path)):
            document = read_json(candidate)
            if not isinstance(document, dict):
                continue
            meta = document.get("meta")
            created_at = meta.get("created_at") if isinstance(meta, dict) else None
            if isinstance(created_at, str) and created_at.strip():
                return created_at
        return self.run_started_at

    def write(self, path: PathLike, record: BaseModel, compress: bool = False) -> Path:
        """
        Stamp and persist a record that has a ``meta`` block.

        Args:
            path: Uncompressed target path
            record: Pydantic record (BackupRecord, CountriesRecord or CatalogRecord)
            compress: Store as ``path.gz`` and remove the plain file

        Returns:
            Path of the file that now holds the record
        """
        path = Path(path)
        record.meta.created_at = self.resolve_created_at(path)
        record.meta.refreshed_at = self._now()

        data = serialize_record(record)
        atomic_write_bytes(path, data)
        if not compress:
            logger.info(f"Wrote {path} ({len(data)} bytes)")
            return path

        gz_path = compressed_path(path)
        atomic_write_bytes(gz_path, gzip_bytes(data))
        path.unlink()
        logger.info(f"Wrote {gz_path} ({len(data)} bytes uncompressed)")
        return gz_path

    def write_raw(self, path: PathLike, text: str) -> Path:
        """Store a raw Overpass response text as is."""
        path = Path(path)
        atomic_write_bytes(path, text.encode("utf-8"))
        logger.debug(f"Wrote raw response {path}")
        return path


def compress_existing_backups(data_dir: PathLike) -> List[str]:
    """
    Gzip plain ``CC_L<n>.json`` backups and remove the originals.

    If an up-to-date ``.gz`` already exists only the plain file is removed.

    Args:
        data_dir: Backup directory

    Returns:
        Names of the plain files that were replaced
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        return []

    replaced: List[str] = []
    for path in sorted(data_dir.iterdir()):
        match = BACKUP_FILE_RE.match(path.name)
        if not path.is_file() or not match or match.group(3):
            continue

        gz_path = compressed_path(path)
        if gz_path.exists() and gz_path.stat().st_mtime >= path.stat().st_mtime:
            logger.info(f"{gz_path.name} is up to date, removing {path.name}")
        else:
            atomic_write_bytes(gz_path, gzip_bytes(path.read_bytes()))
            logger.info(f"Compressed {path.name} -> {gz_path.name}")
        path.unlink()
        replaced.append(path.name)

    return replaced
