"""File naming for backup artifacts inside the data directory."""

import re
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]

COUNTRIES_FILE = "countries.json"
COUNTRIES_RAW_FILE = "countries.raw.json"
CATALOG_FILE = "country-levels.json"
GZIP_SUFFIX = ".gz"

# EE_L2.json or EE_L2.json.gz, side-car raw files do not match
BACKUP_FILE_RE = re.compile(r"^([A-Z]{2})_L(\d+)\.json(\.gz)?$")


def backup_file_name(country_code: str, level: int) -> str:
    return f"{country_code}_L{level}.json"


def backup_file_path(data_dir: PathLike, country_code: str, level: int) -> Path:
    """Uncompressed backup path, e.g. data/EE_L2.json."""
    return Path(data_dir) / backup_file_name(country_code, level)


def compressed_path(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(path.name + GZIP_SUFFIX)


def raw_response_file_name(country_code: str, level: int) -> str:
    return f"{country_code}_L{level}.raw.json"


def raw_part_file_name(country_code: str, level: int, part: int) -> str:
    """Side-car name of one chunk response, parts are numbered from 1."""
    return f"{country_code}_L{level}.raw.part{part}.json"


def backup_exists(data_dir: PathLike, country_code: str, level: int) -> bool:
    """True when the backup exists in plain or gzip form."""
    path = backup_file_path(data_dir, country_code, level)
    return path.exists() or compressed_path(path).exists()


def ensure_dir(path: PathLike) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
