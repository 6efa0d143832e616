"""Exception types shared by the fetch layer and the backup pipeline."""

from enum import Enum
from typing import Optional


class FetchErrorKind(str, Enum):
    """Classification of a failed Overpass request."""

    TRANSIENT = "transient"  # rate limited, upstream down, timeout, network error
    MALFORMED = "malformed"  # not JSON / wrong content type
    TOO_LARGE = "too_large"  # payload too large, out of memory, string length
    HTTP = "http"  # any other non-OK status


class OverpassError(Exception):
    """Base class for Overpass fetch errors."""


class OverpassAttemptError(OverpassError):
    """A single failed request against one endpoint."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.endpoint = endpoint
        self.status_code = status_code


class FetchFailed(OverpassError):
    """Raised once every attempt on every endpoint has failed."""

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind,
        endpoint: Optional[str] = None,
        attempts: int = 0,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.endpoint = endpoint
        self.attempts = attempts
        self.cause = cause

    @property
    def too_large(self) -> bool:
        return self.kind == FetchErrorKind.TOO_LARGE


class BackupError(Exception):
    """Base class for backup pipeline errors."""


class BackupConfigError(BackupError, ValueError):
    """The run configuration does not name any countries or levels."""


class CountryResolutionError(BackupError):
    """No country codes could be resolved for an all-countries run."""


class ChunkPartitionError(BackupError):
    """Chunked fallback found no parent relations to partition the request by."""

    def __init__(self, country_code: str, level: int, parent_level: int):
        super().__init__(
            f"Chunked fetch failed for country={country_code} level={level}: "
            f"no parent relations found at admin_level={parent_level}"
        )
        self.country_code = country_code
        self.level = level
        self.parent_level = parent_level
