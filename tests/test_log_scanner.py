from tracefuse.constants import (
    ERROR_CONNECTION_REFUSED_TO,
    ERROR_EXECUTION_FAILED,
    ERROR_HOST_NOT_FOUND,
    ERROR_TIMEOUT,
)
from tracefuse.core.models import ScanResult
from tracefuse.parser.http_file import parse_http_file
from tracefuse.parser.log_scanner import LogScanner, match_status
from tracefuse.parser.retry_directives import parse_retry_directives

RETRY_LOG = """[10:00:00 INF] Start processing HTTP request GET http://localhost:3001/flaky
[10:00:00 INF] Received HTTP response headers after 5ms - 503
[10:00:01 WRN] Retry attempt 1 for GET http://localhost:3001/flaky
[10:00:01 INF] Received HTTP response headers after 5ms - 503
[10:00:02 WRN] Retry attempt 2 for GET http://localhost:3001/flaky
[10:00:02 INF] Received HTTP response headers after 5ms - 503
[10:00:03 WRN] Retry attempt 3 for GET http://localhost:3001/flaky
[10:00:03 INF] Received HTTP response headers after 7ms - 200
[10:00:03 INF] End processing HTTP request after 40ms - 200
"""

RETRY_HTTP = """# @name GetFlaky
## RETRY-STRATEGY: Default retry
## RETRY-MAX-ATTEMPTS: 3
GET {{baseUrl}}/flaky
"""


def _scan(log_text: str, http_text: str = "") -> ScanResult:
    expected = parse_http_file(http_text)
    return LogScanner(expected, parse_retry_directives(http_text)).scan(log_text)


def test_cars_log(cars_log, cars_http):
    result = _scan(cars_log, cars_http)

    assert result.found_http_request is True
    assert result.connection_error is None
    list_cars, add_car = result.requests

    assert list_cars.name == "ListCars"
    assert list_cars.response_status == 200
    assert list_cars.response_status_text == "OK"
    assert list_cars.duration == "12ms"
    assert list_cars.response_body == '[{"id":1,"brand":"Toyota"}]'
    assert list_cars.response_headers == {"Content-Type": "application/json"}
    assert list_cars.template_url == "{{baseUrl}}/cars"

    assert add_car.name == "AddCar"
    assert add_car.method == "POST"
    assert add_car.response_status == 201
    assert add_car.response_status_text == "Created"
    assert add_car.duration == "129ms"
    assert add_car.request_body == '{\n  "brand": "Toyota",\n  "model": "Supra"\n}'
    assert add_car.request_headers == {"Content-Type": "application/json"}
    assert add_car.response_body == '{"id":2,"brand":"Toyota","model":"Supra"}'
    assert add_car.status_assumed is False


def test_every_started_and_ended_request_is_reported():
    lines = []
    for number in range(5):
        lines.append(f"[09:00:0{number} INF] Start processing HTTP request GET http://localhost/items/{number}")
        lines.append(f"[09:00:0{number} INF] End processing HTTP request after 1{number}ms - 200")

    result = _scan("\n".join(lines))

    assert [r.url for r in result.requests] == [f"http://localhost/items/{n}" for n in range(5)]
    assert [r.duration for r in result.requests] == [f"1{n}ms" for n in range(5)]


def test_scanning_is_repeatable(cars_log, cars_http):
    expected = parse_http_file(cars_http)
    scanner = LogScanner(expected)

    first = scanner.scan(cars_log)
    second = scanner.scan(cars_log)

    assert first.model_dump() == second.model_dump()


def test_auth_and_internal_requests_are_skipped():
    log = (
        "[14:00:00 INF] Start processing HTTP request POST http://localhost:3001/auth/token\n"
        "[14:00:00 INF] End processing HTTP request after 3ms - 200\n"
        "[14:00:00 INF] Start processing HTTP request GET https://api.nuget.org/v3/index.json\n"
        "[14:00:01 INF] Start processing HTTP request POST http://localhost:3001/cars\n"
        "[14:00:01 INF] End processing HTTP request after 9ms - 201\n"
    )

    result = _scan(log)

    assert [r.url for r in result.requests] == ["http://localhost:3001/cars"]
    assert result.requests[0].response_status == 201


def test_no_request_start_markers():
    result = _scan("[14:00:00 INF] Nothing to see here\n[14:00:01 INF] Done\n")

    assert result.found_http_request is False
    assert result.requests == []


def test_connection_refused_without_requests():
    result = _scan("[14:22:01 ERR] Connection refused (localhost:3001)\n")

    assert result.requests == []
    assert result.connection_error == ERROR_CONNECTION_REFUSED_TO.format(url="localhost:3001")


def test_unhandled_error_is_classified_from_following_lines():
    log = (
        "[14:22:01 ERR] Exception was thrown during request execution\n"
        "System.Net.Http.HttpRequestException: No such host is known. (nope.invalid:443)\n"
    )

    assert _scan(log).connection_error == ERROR_HOST_NOT_FOUND


def test_unhandled_timeout():
    log = (
        "[14:22:01 ERR] Unhandled exception while sending request\n"
        "System.Threading.Tasks.TaskCanceledException: The request was canceled "
        "due to the configured HttpClient.Timeout of 100 seconds elapsing.\n"
    )

    assert _scan(log).connection_error == ERROR_TIMEOUT


def test_generic_error_does_not_replace_specific_one():
    log = (
        "[14:22:01 ERR] Connection refused (localhost:3001)\n"
        "[14:22:02 ERR] Exception was thrown during test execution\n"
    )

    assert _scan(log).connection_error == ERROR_CONNECTION_REFUSED_TO.format(url="localhost:3001")


def test_unclassified_unhandled_error():
    assert _scan("[14:22:02 ERR] Unhandled exception in script\n").connection_error == ERROR_EXECUTION_FAILED


def test_connection_error_fails_request_in_flight():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost:3001/cars\n"
        "[14:22:01 ERR] Connection refused (localhost:3001)\n"
    )

    request = _scan(log).requests[0]

    assert request.response_status is None
    assert request.status_assumed is False
    assert request.error_message == ERROR_CONNECTION_REFUSED_TO.format(url="localhost:3001")


def test_unterminated_request_assumes_ok():
    request = _scan("[14:22:01 INF] Start processing HTTP request GET http://localhost/cars\n").requests[0]

    assert request.response_status == 200
    assert request.response_status_text == "OK"
    assert request.status_assumed is True
    assert request.duration is None


def test_end_marker_supplies_missing_status():
    log = (
        "[14:22:01 INF] Start processing HTTP request DELETE http://localhost/cars/9\n"
        "[14:22:01 INF] End processing HTTP request after 50ms - 404\n"
    )

    request = _scan(log).requests[0]

    assert request.response_status == 404
    assert request.response_status_text == "Not Found"
    assert request.duration == "50ms"


def test_response_body_never_shrinks():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost/cars\n"
        "[14:22:01 INF] HTTP/1.1 200 OK\n"
        '[14:22:01 TRC] Response Body: {"a":1,"b":2}\n'
        '[14:22:01 TRC] Response Body: {"a":1}\n'
        "[14:22:01 INF] End processing HTTP request after 5ms - 200\n"
    )

    assert _scan(log).requests[0].response_body == '{"a":1,"b":2}'


def test_longer_response_body_replaces_shorter():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost/cars\n"
        "[14:22:01 INF] HTTP/1.1 200 OK\n"
        '[14:22:01 TRC] Response Body: {"a":1}\n'
        '[14:22:01 TRC] Response Body: {"a":1,"b":2}\n'
    )

    assert _scan(log).requests[0].response_body == '{"a":1,"b":2}'


def test_body_lines_are_not_classified():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost/cars\n"
        "[14:22:01 INF] HTTP/1.1 502 Bad Gateway\n"
        "[14:22:01 TRC] Response's body (application/json):\n"
        '{"error": "Connection refused by upstream"}\n'
        "[14:22:01 INF] End processing HTTP request after 5ms - 502\n"
    )

    result = _scan(log)

    assert result.connection_error is None
    assert result.requests[0].response_body == '{"error": "Connection refused by upstream"}'
    assert result.requests[0].response_status == 502


def test_logged_request_body_used_when_file_has_none():
    log = (
        "[14:22:01 INF] Start processing HTTP request POST http://localhost/cars\n"
        '[14:22:01 TRC] Request Body: {"brand":"Kia"}\n'
        "[14:22:01 INF] End processing HTTP request after 5ms - 201\n"
    )

    assert _scan(log).requests[0].request_body == '{"brand":"Kia"}'


def test_end_marker_prefers_request_with_matching_status():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost/a\n"
        "[14:22:01 INF] Start processing HTTP request GET http://localhost/b\n"
        "[14:22:01 INF] HTTP/1.1 201 Created\n"
        "[14:22:01 INF] HTTP/1.1 200 OK\n"
        "[14:22:01 INF] End processing HTTP request after 30ms - 200\n"
        "[14:22:01 INF] End processing HTTP request after 40ms - 201\n"
    )

    first, second = _scan(log).requests

    assert (first.url, first.response_status, first.duration) == ("http://localhost/a", 200, "30ms")
    assert (second.url, second.response_status, second.duration) == ("http://localhost/b", 201, "40ms")


def test_three_retries_then_success():
    request = _scan(RETRY_LOG, RETRY_HTTP).requests[0]
    info = request.retry_info

    assert request.response_status == 200
    assert info.actual_attempts == 4
    assert info.was_retried is True
    assert [a.attempt_number for a in info.attempts] == [1, 2, 3, 4]
    assert [a.success for a in info.attempts] == [False, False, False, True]
    assert [a.status_code for a in info.attempts] == [503, 503, 503, 200]
    assert info.attempts[3].timestamp == "10:00:03"
    assert info.strategy_name == "Default retry"
    assert info.max_attempts == 3


def test_retry_directive_without_retries_records_single_attempt():
    log = (
        "[10:00:00 INF] Start processing HTTP request GET http://localhost:3001/flaky\n"
        "[10:00:00 INF] End processing HTTP request after 5ms - 200\n"
    )

    info = _scan(log, RETRY_HTTP).requests[0].retry_info

    assert info.actual_attempts == 1
    assert info.was_retried is False
    assert info.attempts[0].success is True


def test_retry_start_is_absorbed_into_original_request():
    http = (
        "# @name First\nGET {{baseUrl}}/first\n\n###\n"
        "# @name Second\nGET {{baseUrl}}/second\n"
    )
    log = (
        "[10:00:00 INF] Start processing HTTP request GET http://localhost/one\n"
        "[10:00:00 INF] HTTP/1.1 500 Internal Server Error\n"
        "[10:00:00 INF] End processing HTTP request after 10ms - 500\n"
        "[10:00:01 WRN] Retrying GET http://localhost/one\n"
        "[10:00:01 INF] Start processing HTTP request GET http://localhost/one\n"
        "[10:00:01 INF] HTTP/1.1 200 OK\n"
        "[10:00:01 INF] End processing HTTP request after 12ms - 200\n"
        "[10:00:02 INF] Start processing HTTP request GET http://localhost/two\n"
        "[10:00:02 INF] End processing HTTP request after 8ms - 200\n"
    )

    first, second = _scan(log, http).requests

    assert first.name == "First"
    assert first.response_status == 200
    assert [a.success for a in first.retry_info.attempts] == [False, True]
    assert second.name == "Second"
    assert second.url == "http://localhost/two"


def test_match_status_fallbacks():
    assert match_status("HTTP/1.1 404 Not Found") == (404, "Not Found", None)
    assert match_status("HTTP Response 201 (Created) was received") == (201, "Created", None)
    assert match_status("Received HTTP response headers after 12.5ms - 204") == (204, "No Content", "12.5")
    assert match_status("status: 418") == (418, "Unknown", None)
    assert match_status("upstream answered 503 Service Unavailable") == (503, "Service Unavailable", None)
    assert match_status("nothing here 1234") is None


def test_timeout_fails_request_in_flight_at_any_level():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost:3001/cars\n"
        "[14:22:31 WRN] Request timed out after 30000ms\n"
    )

    request = _scan(log).requests[0]

    assert request.response_status is None
    assert request.status_assumed is False
    assert request.error_message == ERROR_TIMEOUT


def test_bare_timeout_and_network_error_lines():
    assert _scan("Connection timeout\n").connection_error == ERROR_TIMEOUT
    assert _scan("Network error: socket closed\n").connection_error == ERROR_EXECUTION_FAILED


def test_generic_exception_needs_error_level():
    assert _scan("[14:22:02 INF] Exception was thrown during test execution\n").connection_error is None


def test_inline_body_quoting_an_error_keeps_body():
    log = (
        "[14:22:01 INF] Start processing HTTP request GET http://localhost/cars\n"
        "[14:22:01 INF] HTTP/1.1 502 Bad Gateway\n"
        '[14:22:01 TRC] Response Body: {"error":"upstream Connection refused"}\n'
        "[14:22:01 INF] End processing HTTP request after 5ms - 502\n"
    )

    result = _scan(log)

    assert result.connection_error is None
    assert result.requests[0].response_body == '{"error":"upstream Connection refused"}'


def test_retry_with_rewritten_url_keeps_declarations():
    http = "# @name First\nGET {{baseUrl}}/a\n\n###\n# @name Second\nGET {{baseUrl}}/zzz\n"
    log = (
        "[10:00:00 INF] Start processing HTTP request GET http://localhost/a\n"
        "[10:00:00 INF] End processing HTTP request after 5ms - 500\n"
        "[10:00:01 WRN] Retrying GET http://localhost/a?x=1\n"
        "[10:00:01 INF] Start processing HTTP request GET http://localhost/a?x=1\n"
        "[10:00:01 INF] HTTP/1.1 200 OK\n"
        "[10:00:01 INF] End processing HTTP request after 6ms - 200\n"
        "[10:00:02 INF] Start processing HTTP request GET http://localhost/zzz\n"
        "[10:00:02 INF] End processing HTTP request after 7ms - 200\n"
    )

    first, second = _scan(log, http).requests

    assert (first.name, first.url, first.response_status) == ("First", "http://localhost/a", 200)
    assert [a.success for a in first.retry_info.attempts] == [False, True]
    assert (second.name, second.url) == ("Second", "http://localhost/zzz")


def test_unmatched_retry_start_consumes_no_declaration():
    http = "# @name First\nGET {{baseUrl}}/a\n\n###\n# @name Second\nGET {{baseUrl}}/zzz\n"
    log = (
        "[10:00:00 INF] Start processing HTTP request GET http://localhost/a\n"
        "[10:00:00 INF] End processing HTTP request after 5ms - 500\n"
        "[10:00:01 WRN] Retrying request\n"
        "[10:00:01 INF] Start processing HTTP request POST http://localhost/other\n"
        "[10:00:01 INF] End processing HTTP request after 6ms - 201\n"
        "[10:00:02 INF] Start processing HTTP request GET http://localhost/zzz\n"
        "[10:00:02 INF] End processing HTTP request after 7ms - 200\n"
    )

    requests = _scan(log, http).requests

    assert [(r.name, r.method) for r in requests] == [("First", "GET"), (None, "POST"), ("Second", "GET")]
