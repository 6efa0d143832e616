"""Fallback that splits a failed per-level fetch into parent-scoped parts."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from admin_backup.core.exceptions import ChunkPartitionError, FetchFailed
from admin_backup.schemas.backup import BoundaryRow
from admin_backup.services.backup.backup_writer import BackupWriter
from admin_backup.services.backup.paths import PathLike, raw_part_file_name
from admin_backup.services.osm.overpass_client import OverpassClient
from admin_backup.services.osm.query_builder import (
    DEFAULT_QUERY_TIMEOUT,
    build_admin_level_query,
    build_parent_scoped_query,
)
from admin_backup.services.osm.row_transformer import RowKey, RowTransformer, merge_rows

logger = logging.getLogger(__name__)

DEFAULT_PROACTIVE_MIN_LEVEL = 8


def should_chunk(level: int, error: Optional[FetchFailed], proactive_min_level: int = DEFAULT_PROACTIVE_MIN_LEVEL) -> bool:
    """
    Decide whether a failed fetch is retried in parent-scoped parts.

    Country level requests are never split. Oversized responses always are, and
    deep levels are split on any failure.
    """
    if level <= 2:
        return False
    if error is not None and error.too_large:
        return True
    return level >= proactive_min_level


def parent_level_for(level: int) -> int:
    return max(2, level - 2)


@dataclass
class ChunkedResult:
    rows: List[BoundaryRow]
    parent_level: int
    parts: int
    endpoint: str
    part_files: List[str] = field(default_factory=list)


class ChunkedFetcher:
    """Fetches one (country, level) as one request per parent boundary."""

    def __init__(
        self,
        client: OverpassClient,
        transformer: RowTransformer,
        writer: BackupWriter,
        delay_ms: int = 300,
        sleep: Callable[[float], None] = time.sleep,
        query_timeout: int = DEFAULT_QUERY_TIMEOUT,
    ):
        self.client = client
        self.transformer = transformer
        self.writer = writer
        self.delay_ms = delay_ms
        self._sleep = sleep
        self.query_timeout = query_timeout

    def parent_ids(self, country_code: str, parent_level: int) -> List[int]:
        result = self.client.fetch(
            build_admin_level_query(country_code, parent_level, tags_only=True, timeout=self.query_timeout)
        )
        elements = result.data.get("elements")
        ids = set()
        for element in elements if isinstance(elements, list) else []:
            if not isinstance(element, dict) or element.get("type") != "relation":
                continue
            element_id = element.get("id")
            if isinstance(element_id, int) and not isinstance(element_id, bool):
                ids.add(element_id)
        return sorted(ids)

    def fetch(self, country_code: str, level: int, out_dir: PathLike, retain_raw: bool = True) -> ChunkedResult:
        """
        Fetch all boundaries of a level part by part.

        Args:
            country_code: 2-letter ISO code
            level: Admin level that failed as a single request
            out_dir: Directory receiving raw part files
            retain_raw: Write each part's raw response as a side-car file

        Returns:
            ChunkedResult with merged rows, unique by (osm_type, osm_id)

        Raises:
            ChunkPartitionError: If no parent relations exist at the parent level
            FetchFailed: If listing parents or fetching any part failed
        """
        parent_level = parent_level_for(level)
        parents = self.parent_ids(country_code, parent_level)
        if not parents:
            raise ChunkPartitionError(country_code, level, parent_level)

        logger.info(
            f"Chunking {country_code} L{level} by admin_level={parent_level} into {len(parents)} parts"
        )

        merged: Dict[RowKey, BoundaryRow] = {}
        part_files: List[str] = []
        last_endpoint = ""
        for index, parent_id in enumerate(parents, start=1):
            if index > 1 and self.delay_ms > 0:
                self._sleep(self.delay_ms / 1000.0)

            result = self.client.fetch(build_parent_scoped_query(parent_id, level, timeout=self.query_timeout))
            last_endpoint = result.endpoint
            rows = self.transformer.to_rows(country_code, level, result.data)
            merge_rows(merged, rows)

            if retain_raw:
                name = raw_part_file_name(country_code, level, index)
                self.writer.write_raw(Path(out_dir) / name, result.raw_text)
                part_files.append(name)

            logger.info(
                f"Chunk {index}/{len(parents)} parent={parent_id}: {len(rows)} rows "
                f"({len(merged)} merged so far)"
            )

        return ChunkedResult(
            rows=list(merged.values()),
            parent_level=parent_level,
            parts=len(parents),
            endpoint=f"{last_endpoint} (chunked by admin_level={parent_level}, parts={len(parents)})",
            part_files=part_files,
        )
