"""Overpass API client for fetching OSM data."""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from admin_backup.core.exceptions import FetchErrorKind, FetchFailed, OverpassAttemptError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINTS = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.openstreetmap.ru/api/interpreter",
]

# Rate limited or upstream unavailable
TRANSIENT_STATUS_CODES = {429, 502, 503, 504}

SIZE_ERROR_RE = re.compile(
    r"out of memory|heap out of memory|string length|payload too large"
    r"|request entity too large|response too large",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class OverpassResult:
    endpoint: str
    data: Dict[str, Any]
    raw_text: str


def is_size_error_text(text: str) -> bool:
    """Check whether an error text reports an oversized request or response."""
    return bool(SIZE_ERROR_RE.search(text or ""))


class OverpassClient:
    """Client for interacting with Overpass API."""

    def __init__(
        self,
        endpoints: Optional[List[str]] = None,
        timeout: int = 180,
        max_attempts: int = 3,
        backoff_base_ms: int = 800,
        user_agent: str = "AdminBoundaryBackup/1.0",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize Overpass API client.

        Args:
            endpoints: Ordered Overpass API URLs, primary first then mirrors
            timeout: Request timeout in seconds (per attempt)
            max_attempts: Attempts per endpoint before moving to the next one
            backoff_base_ms: Delay after the first failed attempt, doubled per attempt
            user_agent: User-Agent header sent with every request
            session: Optional requests session (a new one is created if not provided)
            sleep: Sleep function, replaced in tests
        """
        self.endpoints = list(endpoints) if endpoints else list(DEFAULT_ENDPOINTS)
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if len(self.endpoints) < 2:
            logger.warning("Only one Overpass endpoint configured, no mirror to fall back to")

        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base_ms = backoff_base_ms
        self.user_agent = user_agent
        self.session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "OverpassClient":
        return cls(
            endpoints=settings.overpass_endpoints,
            timeout=settings.overpass_timeout_seconds,
            max_attempts=settings.overpass_max_attempts,
            backoff_base_ms=settings.overpass_backoff_base_ms,
            user_agent=settings.overpass_user_agent,
            **kwargs,
        )

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay in seconds after a failed attempt.

        Args:
            attempt: 1-based attempt number on the current endpoint

        Returns:
            base_delay * 2^(attempt-1) in seconds
        """
        return self.backoff_base_ms * (2 ** (attempt - 1)) / 1000.0

    def fetch(self, query: str) -> OverpassResult:
        """
        Run a query, rotating through endpoints with per-endpoint retries.

        Args:
            query: Overpass QL query

        Returns:
            OverpassResult with the serving endpoint, parsed JSON and raw response text

        Raises:
            FetchFailed: If every attempt on every endpoint failed
        """
        last_error: Optional[OverpassAttemptError] = None
        too_large_seen = False
        total_attempts = 0

        for endpoint_index, endpoint in enumerate(self.endpoints):
            is_last_endpoint = endpoint_index == len(self.endpoints) - 1

            for attempt in range(1, self.max_attempts + 1):
                total_attempts += 1
                try:
                    logger.debug(f"Overpass request to {endpoint} (attempt {attempt}/{self.max_attempts})")
                    result = self._attempt(endpoint, query)
                    logger.info(f"Fetched {len(result.raw_text)} bytes from {endpoint}")
                    return result
                except OverpassAttemptError as e:
                    last_error = e
                    too_large_seen = too_large_seen or e.kind == FetchErrorKind.TOO_LARGE
                    logger.warning(
                        f"Overpass attempt {attempt}/{self.max_attempts} failed on {endpoint} "
                        f"({e.kind.value}): {str(e)}"
                    )

                if is_last_endpoint and attempt == self.max_attempts:
                    break
                self._sleep(self.backoff_delay(attempt))

        kind = FetchErrorKind.TOO_LARGE if too_large_seen else last_error.kind
        logger.error(
            f"All Overpass API endpoints failed after {total_attempts} attempts. Last error: {str(last_error)}"
        )
        raise FetchFailed(
            f"Overpass request failed on all endpoints after {total_attempts} attempts. "
            f"Last error ({last_error.endpoint}): {str(last_error)}",
            kind=kind,
            endpoint=last_error.endpoint,
            attempts=total_attempts,
            cause=last_error,
        )

    def _attempt(self, endpoint: str, query: str) -> OverpassResult:
        try:
            response = self.session.post(
                endpoint,
                data={"data": query},
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        except requests.exceptions.Timeout as e:
            raise OverpassAttemptError(
                FetchErrorKind.TRANSIENT, f"Timeout from {endpoint}: {str(e)}", endpoint=endpoint
            ) from e
        except requests.exceptions.RequestException as e:
            raise OverpassAttemptError(
                FetchErrorKind.TRANSIENT, f"Request to {endpoint} failed: {str(e)}", endpoint=endpoint
            ) from e

        status = response.status_code
        try:
            text = response.text
        except MemoryError as e:
            raise OverpassAttemptError(
                FetchErrorKind.TOO_LARGE, f"Response from {endpoint} too large to decode", endpoint, status
            ) from e

        if status in TRANSIENT_STATUS_CODES:
            raise OverpassAttemptError(
                FetchErrorKind.TRANSIENT, f"Overpass {status} {endpoint}", endpoint, status
            )

        if status >= 400:
            kind = FetchErrorKind.TOO_LARGE if status == 413 or is_size_error_text(text) else FetchErrorKind.HTTP
            raise OverpassAttemptError(kind, f"Overpass {status} {endpoint}: {text[:240]}", endpoint, status)

        content_type = str(response.headers.get("content-type", ""))
        stripped = text.lstrip()
        if stripped.startswith("<") or ("json" not in content_type and not stripped.startswith("{")):
            kind = FetchErrorKind.TOO_LARGE if is_size_error_text(text) else FetchErrorKind.MALFORMED
            raise OverpassAttemptError(
                kind, f"Overpass non-JSON response ({endpoint}): {text[:200]}", endpoint, status
            )

        try:
            data = json.loads(text)
        except MemoryError as e:
            raise OverpassAttemptError(
                FetchErrorKind.TOO_LARGE, f"Response from {endpoint} too large to parse", endpoint, status
            ) from e
        except ValueError as e:
            raise OverpassAttemptError(
                FetchErrorKind.MALFORMED, f"Invalid JSON from {endpoint}: {str(e)}", endpoint, status
            ) from e

        if not isinstance(data, dict):
            raise OverpassAttemptError(
                FetchErrorKind.MALFORMED, f"Unexpected JSON document from {endpoint}", endpoint, status
            )

        # Overpass reports runtime errors in "remark" with partial data
        remark = str(data.get("remark") or "")
        if "runtime error" in remark.lower():
            kind = FetchErrorKind.TOO_LARGE if is_size_error_text(remark) else FetchErrorKind.TRANSIENT
            raise OverpassAttemptError(kind, f"Overpass runtime error ({endpoint}): {remark[:240]}", endpoint, status)

        return OverpassResult(endpoint=endpoint, data=data, raw_text=text)
