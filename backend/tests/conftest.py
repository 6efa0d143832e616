import json
from typing import Any, Dict, List, Optional

import pytest
from requests.structures import CaseInsensitiveDict

from admin_backup.core.exceptions import FetchErrorKind, FetchFailed
from admin_backup.services.osm.overpass_client import OverpassResult


class StubResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None,
                 content_type: str = "application/json"):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload if payload is not None else {})
        self.headers = CaseInsensitiveDict({"content-type": content_type})


class StubSession:
    """Returns queued responses (or raises queued exceptions) and records every POST."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def post(self, url, data=None, timeout=None, headers=None):
        self.calls.append({"url": url, "data": data, "timeout": timeout, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class ScriptedClient:
    """Overpass client stand-in answering queries by substring match.

    A needle may be a tuple of substrings that all have to appear in the query.
    """

    def __init__(self, handlers):
        self.handlers = handlers
        self.queries: List[str] = []

    def fetch(self, query: str) -> OverpassResult:
        self.queries.append(query)
        for needle, answer in self.handlers:
            needles = needle if isinstance(needle, tuple) else (needle,)
            if all(part in query for part in needles):
                if isinstance(answer, BaseException):
                    raise answer
                return OverpassResult(endpoint="https://overpass.test/api/interpreter", data=answer,
                                      raw_text=json.dumps(answer))
        raise AssertionError(f"Unexpected query: {query}")


def square(lon: float, lat: float, size: float = 1.0) -> List[Dict[str, float]]:
    """Closed ring in Overpass ``geometry`` form."""
    return [
        {"lon": lon, "lat": lat},
        {"lon": lon + size, "lat": lat},
        {"lon": lon + size, "lat": lat + size},
        {"lon": lon, "lat": lat + size},
        {"lon": lon, "lat": lat},
    ]


def boundary_relation(relation_id: int, name: str, level: int, lon: float = 24.0, lat: float = 58.0,
                      **extra_tags) -> Dict[str, Any]:
    tags = {"boundary": "administrative", "admin_level": str(level), "name": name}
    tags.update(extra_tags)
    return {
        "type": "relation",
        "id": relation_id,
        "tags": tags,
        "members": [{"type": "way", "ref": relation_id * 10, "role": "outer", "geometry": square(lon, lat)}],
    }


def too_large_failure() -> FetchFailed:
    return FetchFailed("Overpass runtime error: heap out of memory", kind=FetchErrorKind.TOO_LARGE,
                       endpoint="https://overpass.test/api/interpreter", attempts=9)


def transient_failure() -> FetchFailed:
    return FetchFailed("Overpass 503", kind=FetchErrorKind.TRANSIENT,
                       endpoint="https://overpass.test/api/interpreter", attempts=9)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def estonia_payload():
    return {
        "version": 0.6,
        "elements": [boundary_relation(79510, "Eesti", 2, **{"ISO3166-1": "EE"})],
    }
