"""Backup run orchestration: countries, levels, fetch, chunk fallback and writes."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from admin_backup.core.config import Settings, get_settings
from admin_backup.core.exceptions import (
    BackupConfigError,
    ChunkPartitionError,
    CountryResolutionError,
    FetchFailed,
)
from admin_backup.schemas.backup import BackupMeta, BackupRecord, CountriesMeta, CountriesRecord
from admin_backup.services.backup.backup_reader import load_countries
from admin_backup.services.backup.backup_writer import BackupWriter
from admin_backup.services.backup.catalog_store import LevelCatalog, load_catalog, save_catalog
from admin_backup.services.backup.chunked_fetcher import (
    DEFAULT_PROACTIVE_MIN_LEVEL,
    ChunkedFetcher,
    should_chunk,
)
from admin_backup.services.backup.paths import (
    CATALOG_FILE,
    COUNTRIES_FILE,
    COUNTRIES_RAW_FILE,
    backup_exists,
    backup_file_path,
    ensure_dir,
    raw_response_file_name,
)
from admin_backup.services.osm.discovery import LevelDiscovery, extract_countries
from admin_backup.services.osm.overpass_client import OverpassClient
from admin_backup.services.osm.query_builder import (
    DEFAULT_QUERY_TIMEOUT,
    build_admin_level_query,
    build_all_countries_query,
)
from admin_backup.services.osm.row_transformer import RowTransformer
from admin_backup.services.utils import format_error, normalize_country_code, parse_positive_int

logger = logging.getLogger(__name__)


@dataclass
class BackupOptions:
    countries: List[str] = field(default_factory=list)
    levels: List[int] = field(default_factory=list)
    all_countries: bool = False
    all_levels: bool = False
    out_dir: str = "./data"
    delay_ms: int = 300
    retain_raw: bool = True
    compress: bool = True
    fail_fast: bool = False

    @property
    def incremental(self) -> bool:
        """Full sweeps only fill in what is missing on disk."""
        return self.all_countries and self.all_levels

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "BackupOptions":
        values = dict(
            countries=list(settings.default_countries),
            levels=list(settings.default_levels),
            out_dir=settings.data_dir,
            delay_ms=settings.backup_delay_ms,
            retain_raw=settings.backup_retain_raw,
            compress=settings.backup_compress,
            fail_fast=settings.backup_fail_fast,
        )
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass
class TargetFailure:
    country_code: str
    level: Optional[int]
    endpoint: Optional[str]
    error: str


@dataclass
class BackupRunResult:
    countries: List[str] = field(default_factory=list)
    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    chunked: List[str] = field(default_factory=list)
    failures: List[TargetFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def normalize_countries(values: List[str]) -> List[str]:
    """Trimmed, uppercased, de-duplicated country codes in input order."""
    codes: List[str] = []
    for value in values:
        code = normalize_country_code(value)
        if code is None:
            if str(value).strip():
                logger.warning(f"Ignoring invalid country code: {value!r}")
            continue
        if code not in codes:
            codes.append(code)
    return codes


def normalize_levels(values: List[int]) -> List[int]:
    levels: List[int] = []
    for value in values:
        level = parse_positive_int(value)
        if level is not None and level not in levels:
            levels.append(level)
    return levels


class BackupService:
    """Runs one backup over the configured countries and levels."""

    def __init__(
        self,
        client: OverpassClient,
        transformer: Optional[RowTransformer] = None,
        sleep: Callable[[float], None] = time.sleep,
        query_timeout: int = DEFAULT_QUERY_TIMEOUT,
        proactive_min_level: int = DEFAULT_PROACTIVE_MIN_LEVEL,
    ):
        """
        Initialize backup service.

        Args:
            client: Overpass client used for every request
            transformer: Row transformer (defaults to the shapely based one)
            sleep: Sleep function for the politeness delay, replaced in tests
            query_timeout: Overpass server-side timeout written into queries
            proactive_min_level: Levels at or above this are chunked on any fetch failure
        """
        self.client = client
        self.transformer = transformer or RowTransformer()
        self.discovery = LevelDiscovery(client, query_timeout=query_timeout)
        self._sleep = sleep
        self.query_timeout = query_timeout
        self.proactive_min_level = proactive_min_level

    def run(self, options: BackupOptions) -> BackupRunResult:
        """
        Execute a backup run.

        Args:
            options: Run configuration

        Returns:
            BackupRunResult with written, skipped and failed targets

        Raises:
            BackupConfigError: If no countries or no levels are selected
            CountryResolutionError: If an all-countries run finds no country codes
            FetchFailed: If the country list cannot be fetched, or any target fails with fail_fast
            ChunkPartitionError: If chunking finds no parents and fail_fast is set
        """
        countries = normalize_countries(options.countries)
        levels = normalize_levels(options.levels)
        if not countries and not options.all_countries:
            raise BackupConfigError("No countries selected. Pass country codes or enable all countries.")
        if not levels and not options.all_levels:
            raise BackupConfigError("No admin levels selected. Pass levels or enable all levels.")

        out_dir = ensure_dir(options.out_dir)
        writer = BackupWriter()
        chunker = ChunkedFetcher(
            self.client,
            self.transformer,
            writer,
            delay_ms=options.delay_ms,
            sleep=self._sleep,
            query_timeout=self.query_timeout,
        )
        catalog_path = out_dir / CATALOG_FILE
        # The level catalog only backs full sweeps
        catalog = load_catalog(catalog_path) if options.incremental else LevelCatalog()
        result = BackupRunResult()

        logger.info(
            f"Starting backup into {out_dir} (incremental={options.incremental}, "
            f"retain_raw={options.retain_raw}, compress={options.compress})"
        )

        try:
            if options.all_countries:
                countries = self._resolve_all_countries(options, out_dir, writer)
            result.countries = countries

            for country_code in countries:
                country_levels = self._resolve_levels(country_code, levels, options, catalog, result)
                if not country_levels:
                    logger.info(f"No admin levels for {country_code}, skipping")
                    continue

                for level in country_levels:
                    if options.incremental and backup_exists(out_dir, country_code, level):
                        logger.info(f"Backup for {country_code} L{level} exists, skipping")
                        result.skipped.append(f"{country_code}_L{level}")
                        continue

                    try:
                        self._backup_level(country_code, level, options, out_dir, writer, chunker, result)
                    except (FetchFailed, ChunkPartitionError) as e:
                        self._record_failure(result, country_code, level, e, options)
                    self._delay(options)
        finally:
            if options.incremental and catalog.changed:
                save_catalog(catalog_path, catalog, writer)
                logger.info(f"Saved level catalog {catalog_path}")

        logger.info(
            f"Backup finished: {len(result.countries)} countries, {len(result.written)} written, "
            f"{len(result.skipped)} skipped, {len(result.chunked)} chunked, {len(result.failures)} failed"
        )
        return result

    def _delay(self, options: BackupOptions) -> None:
        if options.delay_ms > 0:
            self._sleep(options.delay_ms / 1000.0)

    def _record_failure(
        self,
        result: BackupRunResult,
        country_code: str,
        level: Optional[int],
        error: Exception,
        options: BackupOptions,
    ) -> None:
        endpoint = getattr(error, "endpoint", None)
        target = f"{country_code} L{level}" if level is not None else f"{country_code} level discovery"
        logger.error(f"Backup failed for {target} (endpoint={endpoint}): {format_error(error)}")
        result.failures.append(
            TargetFailure(country_code=country_code, level=level, endpoint=endpoint, error=format_error(error))
        )
        if options.fail_fast:
            raise error

    def _resolve_all_countries(self, options: BackupOptions, out_dir: Path, writer: BackupWriter) -> List[str]:
        countries_path = out_dir / COUNTRIES_FILE

        if options.incremental:
            document = load_countries(out_dir)
            stored = document.get("countries") if isinstance(document, dict) else None
            codes = normalize_countries(
                [item.get("country_code") for item in stored or [] if isinstance(item, dict)]
            )
            if codes:
                logger.info(f"Using {len(codes)} countries from {countries_path}")
                return codes

        fetched = self.client.fetch(build_all_countries_query(timeout=self.query_timeout))
        countries = extract_countries(fetched.data)
        if not countries:
            raise CountryResolutionError("No country codes found in the all-countries response")

        if not (options.incremental and countries_path.exists()):
            raw_file = None
            if options.retain_raw:
                writer.write_raw(out_dir / COUNTRIES_RAW_FILE, fetched.raw_text)
                raw_file = COUNTRIES_RAW_FILE
            record = CountriesRecord(
                meta=CountriesMeta(endpoint=fetched.endpoint),
                countries=countries,
                raw_api_response_file=raw_file,
            )
            writer.write(countries_path, record, compress=False)

        self._delay(options)
        return [country.country_code for country in countries]

    def _resolve_levels(
        self,
        country_code: str,
        levels: List[int],
        options: BackupOptions,
        catalog: LevelCatalog,
        result: BackupRunResult,
    ) -> List[int]:
        if not options.all_levels:
            return levels

        if options.incremental:
            known = catalog.get(country_code)
            if known:
                return known

        try:
            discovered = self.discovery.discover_levels(country_code)
        except FetchFailed as e:
            self._record_failure(result, country_code, None, e, options)
            return []
        finally:
            self._delay(options)

        if options.incremental:
            catalog.record(country_code, discovered)
        return discovered

    def _backup_level(
        self,
        country_code: str,
        level: int,
        options: BackupOptions,
        out_dir: Path,
        writer: BackupWriter,
        chunker: ChunkedFetcher,
        result: BackupRunResult,
    ) -> None:
        raw_file = None
        raw_parts = None
        try:
            fetched = self.client.fetch(
                build_admin_level_query(country_code, level, timeout=self.query_timeout)
            )
        except FetchFailed as e:
            if not should_chunk(level, e, self.proactive_min_level):
                raise
            logger.warning(f"Direct fetch for {country_code} L{level} failed ({e.kind.value}), chunking")
            chunked = chunker.fetch(country_code, level, out_dir, retain_raw=options.retain_raw)
            rows = chunked.rows
            endpoint = chunked.endpoint
            if options.retain_raw:
                raw_parts = chunked.part_files
            result.chunked.append(f"{country_code}_L{level}")
        else:
            rows = self.transformer.to_rows(country_code, level, fetched.data)
            endpoint = fetched.endpoint
            if options.retain_raw:
                raw_file = raw_response_file_name(country_code, level)
                writer.write_raw(out_dir / raw_file, fetched.raw_text)

        record = BackupRecord(
            meta=BackupMeta(country_code=country_code, level=level, endpoint=endpoint),
            rows=rows,
            raw_api_response_file=raw_file,
            raw_api_response_parts=raw_parts,
        )
        written = writer.write(backup_file_path(out_dir, country_code, level), record, compress=options.compress)
        result.written.append(written.name)
        logger.info(f"Backed up {country_code} L{level}: {len(rows)} rows from {endpoint}")


def run_backup(
    options: BackupOptions,
    settings: Optional[Settings] = None,
    client: Optional[OverpassClient] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BackupRunResult:
    """Build a BackupService from settings and run it."""
    settings = settings or get_settings()
    client = client or OverpassClient.from_settings(settings, sleep=sleep)
    service = BackupService(
        client,
        sleep=sleep,
        query_timeout=settings.overpass_query_timeout_seconds,
        proactive_min_level=settings.chunk_proactive_min_level,
    )
    return service.run(options)
