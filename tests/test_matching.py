import pytest

from tracefuse.core.models import ExpectedRequest, ObservedRequest
from tracefuse.parser.matching import (
    awaits_response,
    extract_url_path,
    find_expected_request,
    has_status,
    has_status_without_body,
    select_latest,
    select_oldest,
    template_path_matches,
)


def _expected(method: str, url: str, name: str = None) -> ExpectedRequest:
    return ExpectedRequest(name=name, method=method, url=url, template_url=url)


@pytest.mark.parametrize("url,path", [
    ("http://localhost:3001/cars", "/cars"),
    ("https://api.example.com/cars/?page=2", "/cars?page=2"),
    ("{{baseUrl}}/cars/{{id}}", "/cars/{{id}}"),
    ("{{baseUrl}}", "/"),
    ("http://localhost:3001", "/"),
    ("/cars#fragment", "/cars"),
])
def test_extract_url_path(url, path):
    assert extract_url_path(url) == path


def test_template_path_matches_variables():
    assert template_path_matches("{{baseUrl}}/cars/{{id}}", "http://localhost/cars/42")
    assert not template_path_matches("{{baseUrl}}/cars/{{id}}", "http://localhost/cars/42/wheels")
    assert not template_path_matches("{{baseUrl}}/cars", "http://localhost/cars")


def test_exact_path_wins_over_file_order():
    expected = [
        _expected("GET", "{{baseUrl}}/owners", "ListOwners"),
        _expected("GET", "{{baseUrl}}/cars", "ListCars"),
    ]

    assert find_expected_request("GET", "http://localhost/cars", expected, set()) == 1


def test_wildcard_match_before_positional():
    expected = [
        _expected("GET", "{{baseUrl}}/owners", "ListOwners"),
        _expected("GET", "{{baseUrl}}/cars/{{carId}}", "GetCar"),
    ]

    assert find_expected_request("GET", "http://localhost/cars/7", expected, set()) == 1


def test_method_must_match_for_path_matches():
    expected = [
        _expected("DELETE", "{{baseUrl}}/owners"),
        _expected("POST", "{{baseUrl}}/cars"),
    ]

    # No GET declaration: falls back to the first unconsumed declaration
    assert find_expected_request("GET", "http://localhost/cars", expected, set()) == 0


def test_consumed_declarations_are_skipped():
    expected = [
        _expected("GET", "{{baseUrl}}/cars", "First"),
        _expected("GET", "{{baseUrl}}/cars", "Second"),
    ]

    assert find_expected_request("GET", "http://localhost/cars", expected, {0}) == 1
    assert find_expected_request("GET", "http://localhost/cars", expected, {0, 1}) is None


def test_select_latest_and_oldest():
    items = [1, 2, 3, 4]

    assert select_latest(items, lambda n: n % 2 == 1) == 3
    assert select_oldest(items, lambda n: n > 1) == 2
    assert select_latest(items, lambda n: n > 10) is None
    assert select_oldest([], lambda n: True) is None


def test_in_flight_predicates():
    waiting = ObservedRequest(method="GET", url="http://localhost/a")
    answered = ObservedRequest(method="GET", url="http://localhost/b", response_status=200)
    retrying = ObservedRequest(
        method="GET", url="http://localhost/c", response_status=503, awaiting_retry=True
    )
    with_body = ObservedRequest(
        method="GET", url="http://localhost/d", response_status=200, response_body="{}"
    )
    entries = [waiting, answered, retrying, with_body]

    assert select_latest(entries, awaits_response) is retrying
    assert select_oldest(entries, awaits_response) is waiting
    assert select_latest(entries, has_status_without_body) is retrying
    assert select_latest(entries, has_status(200)) is with_body
    assert select_latest(entries, has_status(None)) is None
