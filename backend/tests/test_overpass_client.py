import pytest
import requests

from admin_backup.core.exceptions import FetchErrorKind, FetchFailed
from admin_backup.services.osm.overpass_client import OverpassClient, is_size_error_text

from conftest import StubResponse, StubSession

ENDPOINTS = ["https://a.test/api/interpreter", "https://b.test/api/interpreter"]


def make_client(responses, sleeps, endpoints=ENDPOINTS, max_attempts=3):
    session = StubSession(responses)
    client = OverpassClient(
        endpoints=endpoints,
        timeout=5,
        max_attempts=max_attempts,
        backoff_base_ms=800,
        session=session,
        sleep=sleeps.append,
    )
    return client, session


def test_503_then_200_stays_on_first_endpoint(sleeps):
    client, session = make_client(
        [StubResponse(503, text="busy", content_type="text/plain"), StubResponse(200, {"elements": []})],
        sleeps,
    )

    result = client.fetch("[out:json];")

    assert result.endpoint == ENDPOINTS[0]
    assert result.data == {"elements": []}
    assert [call["url"] for call in session.calls] == [ENDPOINTS[0], ENDPOINTS[0]]
    assert sleeps == [0.8]


def test_request_sends_query_form_and_user_agent(sleeps):
    client, session = make_client([StubResponse(200, {"elements": []})], sleeps)

    client.fetch("QUERY")

    call = session.calls[0]
    assert call["data"] == {"data": "QUERY"}
    assert call["timeout"] == 5
    assert call["headers"]["User-Agent"] == "AdminBoundaryBackup/1.0"


def test_backoff_doubles_per_attempt_and_rotates_endpoints(sleeps):
    failures = [StubResponse(429, text="", content_type="text/plain") for _ in range(6)]
    client, session = make_client(failures, sleeps)

    with pytest.raises(FetchFailed) as exc_info:
        client.fetch("[out:json];")

    assert [call["url"] for call in session.calls] == [ENDPOINTS[0]] * 3 + [ENDPOINTS[1]] * 3
    # no sleep after the final attempt of the final endpoint
    assert sleeps == [0.8, 1.6, 3.2, 0.8, 1.6]
    assert exc_info.value.kind == FetchErrorKind.TRANSIENT
    assert exc_info.value.attempts == 6
    assert exc_info.value.endpoint == ENDPOINTS[1]


def test_backoff_delay_formula():
    client = OverpassClient(endpoints=ENDPOINTS, backoff_base_ms=500, session=StubSession([]))
    assert [client.backoff_delay(k) for k in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]


def test_html_error_page_is_malformed(sleeps):
    html = StubResponse(200, text="<html><body>rate_limited</body></html>", content_type="text/html")
    client, _ = make_client([html], sleeps, endpoints=ENDPOINTS[:1], max_attempts=1)

    with pytest.raises(FetchFailed) as exc_info:
        client.fetch("q")

    assert exc_info.value.kind == FetchErrorKind.MALFORMED
    assert sleeps == []


def test_json_body_without_json_content_type_is_accepted(sleeps):
    response = StubResponse(200, {"elements": [1]}, content_type="text/plain")
    client, _ = make_client([response], sleeps)

    assert client.fetch("q").data == {"elements": [1]}


def test_runtime_error_remark_out_of_memory_is_too_large(sleeps):
    remark = {"elements": [], "remark": "runtime error: Query run out of memory using about 2048 MB of RAM."}
    client, _ = make_client([StubResponse(200, remark) for _ in range(2)], sleeps, max_attempts=1)

    with pytest.raises(FetchFailed) as exc_info:
        client.fetch("q")

    assert exc_info.value.too_large
    assert exc_info.value.attempts == 2


def test_too_large_wins_over_later_transient_errors(sleeps):
    responses = [
        StubResponse(413, text="Request Entity Too Large", content_type="text/plain"),
        requests.exceptions.ConnectionError("reset"),
    ]
    client, _ = make_client(responses, sleeps, max_attempts=1)

    with pytest.raises(FetchFailed) as exc_info:
        client.fetch("q")

    assert exc_info.value.kind == FetchErrorKind.TOO_LARGE


def test_other_http_status_is_http_kind(sleeps):
    client, _ = make_client(
        [StubResponse(400, text="parse error", content_type="text/plain")], sleeps,
        endpoints=ENDPOINTS[:1], max_attempts=1,
    )

    with pytest.raises(FetchFailed) as exc_info:
        client.fetch("q")

    assert exc_info.value.kind == FetchErrorKind.HTTP


def test_timeout_is_retried(sleeps):
    client, _ = make_client(
        [requests.exceptions.Timeout("read timed out"), StubResponse(200, {"elements": []})], sleeps
    )

    assert client.fetch("q").endpoint == ENDPOINTS[0]
    assert sleeps == [0.8]


def test_invalid_max_attempts_rejected():
    with pytest.raises(ValueError):
        OverpassClient(endpoints=ENDPOINTS, max_attempts=0, session=StubSession([]))


def test_size_error_patterns():
    assert is_size_error_text("JavaScript heap out of memory")
    assert is_size_error_text("Invalid string length")
    assert is_size_error_text("413 Payload Too Large")
    assert not is_size_error_text("Gateway Timeout")
