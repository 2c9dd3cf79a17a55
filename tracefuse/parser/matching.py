"""
Pure matching functions used by the log scanner.

Two concerns live here: correlating a logged request with its declaration in
the request file, and choosing which in-flight entry a later log line belongs
to. In-flight entries are kept in start order; selection is last-in unless a
rule asks for the oldest entry explicitly.
"""

import re
from typing import Callable, Collection, Optional, Sequence, TypeVar
from urllib.parse import urlsplit

from tracefuse.core.models import ExpectedRequest, ObservedRequest
from tracefuse.parser.patterns import TEMPLATE_VARIABLE

T = TypeVar("T")

_LEADING_VARIABLE = re.compile(r"^\{\{[^}]+\}\}")


def extract_url_path(url: str) -> str:
    """
    Return the path and query of a URL for comparison.

    Absolute URLs lose scheme and host; a leading ``{{baseUrl}}`` style
    variable is treated as the host. Trailing slashes are ignored.

    Examples:
        >>> extract_url_path("http://localhost:3001/cars?page=1")
        '/cars?page=1'
        >>> extract_url_path("{{baseUrl}}/cars/")
        '/cars'
    """
    url = url.strip().split("#", 1)[0]

    if "://" in url:
        try:
            parts = urlsplit(url)
            path = parts.path + (f"?{parts.query}" if parts.query else "")
        except ValueError:
            path = url.split("://", 1)[1].partition("/")[2]
            path = f"/{path}"
    else:
        path = _LEADING_VARIABLE.sub("", url)

    if not path.startswith("/"):
        path = f"/{path}"
    base, sep, query = path.partition("?")
    base = base.rstrip("/") or "/"
    return f"{base}{sep}{query}"


def template_path_matches(template_url: str, actual_url: str) -> bool:
    """True when ``actual_url`` fits ``template_url`` with variables as wildcards."""
    template_path = extract_url_path(template_url)
    if not TEMPLATE_VARIABLE.search(template_path):
        return False
    pieces = TEMPLATE_VARIABLE.split(template_path)
    pattern = r"[^/?#&]+".join(re.escape(piece) for piece in pieces)
    return re.fullmatch(pattern, extract_url_path(actual_url)) is not None


def find_expected_request(
    method: str,
    url: str,
    expected: Sequence[ExpectedRequest],
    consumed: Collection[int],
) -> Optional[int]:
    """
    Find the declaration a logged request start belongs to.

    Candidates are the declarations not yet consumed. The first exact path
    match with the same method wins, then the first wildcard match, then the
    first candidate in file order.

    Args:
        method: Logged HTTP method
        url: Logged, resolved URL
        expected: Declarations in file order
        consumed: Indices already assigned to earlier log entries

    Returns:
        Index into ``expected``, or None when every declaration is consumed
    """
    candidates = [
        (index, request) for index, request in enumerate(expected) if index not in consumed
    ]
    if not candidates:
        return None

    method = method.upper()
    path = extract_url_path(url)

    for index, request in candidates:
        if request.method == method and extract_url_path(request.template_url) == path:
            return index

    for index, request in candidates:
        if request.method == method and template_path_matches(request.template_url, url):
            return index

    return candidates[0][0]


def select_latest(items: Sequence[T], predicate: Callable[[T], bool]) -> Optional[T]:
    """Most recently added item satisfying ``predicate``."""
    for item in reversed(items):
        if predicate(item):
            return item
    return None


def select_oldest(items: Sequence[T], predicate: Callable[[T], bool]) -> Optional[T]:
    """Earliest added item satisfying ``predicate``."""
    for item in items:
        if predicate(item):
            return item
    return None


# In-flight selection predicates

def lacks_response_status(entry: ObservedRequest) -> bool:
    return entry.response_status is None


def awaits_response(entry: ObservedRequest) -> bool:
    """No status yet, or a retry is expecting a fresh one."""
    return entry.response_status is None or entry.awaiting_retry


def has_status_without_body(entry: ObservedRequest) -> bool:
    return entry.response_status is not None and not entry.response_body


def has_response_status(entry: ObservedRequest) -> bool:
    return entry.response_status is not None


def lacks_request_body(entry: ObservedRequest) -> bool:
    return not entry.request_body


def lacks_duration(entry: ObservedRequest) -> bool:
    return entry.duration is None


def has_status(status_code: Optional[int]) -> Callable[[ObservedRequest], bool]:
    """Predicate for entries whose recorded status equals ``status_code``."""
    def predicate(entry: ObservedRequest) -> bool:
        return status_code is not None and entry.response_status == status_code
    return predicate


def same_call(method: str, url: str) -> Callable[[ObservedRequest], bool]:
    """Predicate for entries logged with the same method and URL."""
    def predicate(entry: ObservedRequest) -> bool:
        return entry.method == method and entry.url == url
    return predicate


def all_of(*predicates: Callable[[T], bool]) -> Callable[[T], bool]:
    def predicate(item: T) -> bool:
        return all(check(item) for check in predicates)
    return predicate
