"""
Line patterns for the request file, the runner log and the XML report.

These expressions are the contract with the wrapped test runner. When its log
wording changes, this module is the one place to update; bump
``PATTERNS_VERSION`` whenever a pattern changes meaning.
"""

import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

from tracefuse.constants import STATUS_TEXTS, SUPPORTED_HTTP_METHODS

PATTERNS_VERSION = "teapie-log-3"

_METHODS = "|".join(SUPPORTED_HTTP_METHODS)

# .http request file
TEST_DIRECTIVE = re.compile(r"^##\s*TEST-")
RETRY_DIRECTIVE = re.compile(r"^##\s*RETRY-(?P<key>[A-Za-z-]+)\s*:\s*(?P<value>.*)$")
NAME_DIRECTIVE = re.compile(r"^#\s*@name\s+(?P<name>.+)")
TITLE_LINE = re.compile(r"^###\s+(?P<title>.+)")
REQUEST_BOUNDARY = re.compile(r"^###")
METHOD_LINE = re.compile(rf"^(?P<method>{_METHODS})\s+(?P<url>.+)", re.IGNORECASE)
BODY_COMMENT_PREFIXES = ("#", "//")
TEMPLATE_VARIABLE = re.compile(r"\{\{[^}]+\}\}")

# Log line prefix: "[14:22:01 INF]", "[2024-05-01 14:22:01.123 +02:00 INF]",
# "2024-05-01T14:22:01 [INF]", "info:" and friends.
_LEVELS = (
    r"VRB|VERBOSE|TRC|TRACE|DBG|DEBUG|INF|INFO|WRN|WARN|WARNING|"
    r"ERR|ERROR|FTL|FATAL|CRIT|CRITICAL"
)
LOG_PREFIX = re.compile(
    r"^\[?(?P<timestamp>(?:\d{4}-\d{2}-\d{2}[ T])?\d{2}:\d{2}:\d{2}(?:[.,]\d+)?"
    r"(?:\s?(?:Z|[+-]\d{2}:?\d{2}))?)"
    rf"(?:\s+\[?(?P<level>{_LEVELS})\]?)?\]?\s*",
    re.IGNORECASE,
)
LEVEL_PREFIX = re.compile(
    rf"^(?:\[(?P<level>{_LEVELS})\]|(?P<short>trce|dbug|info|warn|fail|crit):)\s*",
    re.IGNORECASE,
)
ERROR_LEVELS = {"err", "error", "ftl", "fatal", "fail", "crit", "critical"}

# Rule 1: fatal connection-level markers
CONNECTION_REFUSED = re.compile(r"Connection refused|actively refused|ECONNREFUSED", re.IGNORECASE)
HOST_NOT_FOUND = re.compile(
    r"Host not found|No such host is known|Name or service not known|"
    r"nodename nor servname|ENOTFOUND|getaddrinfo",
    re.IGNORECASE,
)
TIMEOUT_ERROR = re.compile(
    r"timed out|Connection timeout|TaskCanceledException|TimeoutException|ETIMEDOUT",
    re.IGNORECASE,
)
# Generic exception wording; only fatal on error-level lines
UNHANDLED_ERROR = re.compile(r"Exception was thrown|Unhandled exception", re.IGNORECASE)
NETWORK_ERROR = re.compile(r"Network error|An error occurred while sending the request", re.IGNORECASE)
ERROR_URL = re.compile(r"(https?://[^\s'\")]+)|\(([\w.-]+:\d+)\)|'([\w.-]+:\d+)'")

# Rule 2: request start
REQUEST_START = re.compile(
    rf"(?:Start processing HTTP request|Starting HTTP request)\s+(?P<method>{_METHODS})\s+(?P<url>\S+)"
)

# Rules 3 and 5: body markers, optional "(content/type)" and inline text after ':'
REQUEST_BODY = re.compile(
    r"(?:Following HTTP request's body|Request Body|Request content)"
    r"\s*(?:\((?P<content_type>[^)]+)\))?\s*:\s*(?P<inline>.*)$",
    re.IGNORECASE,
)
RESPONSE_BODY = re.compile(
    r"(?:Response's body|Response Body|Response content|Response data)"
    r"\s*(?:\((?P<content_type>[^)]+)\))?\s*:\s*(?P<inline>.*)$",
    re.IGNORECASE,
)

# Rule 4: response status, most specific first
_STATUS_WORDS = "|".join(
    re.escape(text) for text in sorted(set(STATUS_TEXTS.values()), key=len, reverse=True)
)
RESPONSE_STATUS_PATTERNS = (
    ("status_line", re.compile(r"\bHTTP/\d(?:\.\d)?\s+(?P<code>\d{3})(?:[ \t]+(?P<text>[^\r\n]*))?")),
    ("tool_response", re.compile(r"HTTP Response (?P<code>\d{3}) \((?P<text>[^)]+)\)")),
    ("response_headers", re.compile(
        r"Received HTTP response headers after (?P<duration>\d+(?:\.\d+)?)\s*ms\s*-\s*(?P<code>\d{3})"
    )),
    ("status_field", re.compile(
        r"\b(?:status(?: code)?|code)\s*[:=]\s*(?P<code>\d{3})\b(?:[ \t]+(?P<text>[A-Za-z][^\r\n,;]*))?",
        re.IGNORECASE,
    )),
    ("status_word", re.compile(rf"\b(?P<code>[1-5]\d{{2}})\s+(?P<text>{_STATUS_WORDS})\b")),
)
DURATION_MS = re.compile(r"(?P<value>\d+(?:\.\d+)?)\s*ms\b")

# Rule 6: retry attempt
RETRY_ATTEMPT = re.compile(r"\b(?:Retry attempt|Retrying)\b", re.IGNORECASE)

# Rule 7: request end, duration and (usually) status in one line
REQUEST_END = re.compile(
    r"(?:End processing HTTP request|HTTP request finished|Request completed)\s+(?:after|in)\s+"
    r"(?P<duration>\d+(?:\.\d+)?)\s*ms(?:\s*-\s*(?P<code>\d{3}))?"
)

# Calls made by the runner itself rather than by the request file
INTERNAL_URL_FRAGMENTS = (
    "api.nuget.org",
    "nuget.org",
    "registration5-gz-semver2",
    "github.com/nuget",
    "login.microsoftonline.com",
    "dotnet.microsoft.com",
    "dotnetcli.azureedge.net",
)
AUTH_PATH = re.compile(r"(?:/auth/token|/connect/token|/token)/?$|/oauth2?(?:/|$)", re.IGNORECASE)

# XML report
TESTSUITE = re.compile(r"<testsuite\b(?P<attrs>[^>]*?)(?:/>|>(?P<body>.*?)</testsuite\s*>)", re.DOTALL)
TESTCASE = re.compile(r"<testcase\b(?P<attrs>[^>]*?)(?:/>|>(?P<body>.*?)</testcase\s*>)", re.DOTALL)
FAILURE = re.compile(
    r"<(?P<tag>failure|error)\b(?P<attrs>[^>]*?)(?:/>|>(?P<body>.*?)</(?P=tag)\s*>)", re.DOTALL
)
SKIPPED = re.compile(r"<skipped\b", re.DOTALL)
XML_ATTRIBUTE = re.compile(r"(?P<key>[\w:.-]+)\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)')")
CDATA = re.compile(r"<!\[CDATA\[(?P<text>.*?)\]\]>", re.DOTALL)
FAILURE_INDICATORS = ("Assertion failed", "AssertionException", "Assert.", "[FAIL]")


def split_log_prefix(line: str) -> Tuple[Optional[str], Optional[str], str]:
    """
    Split a log line into timestamp, level tag and message.

    Args:
        line: Stripped log line

    Returns:
        (timestamp, level, message); missing parts are None
    """
    match = LOG_PREFIX.match(line)
    if match:
        return match.group("timestamp"), match.group("level"), line[match.end():]
    match = LEVEL_PREFIX.match(line)
    if match:
        return None, match.group("level") or match.group("short"), line[match.end():]
    return None, None, line


def has_log_prefix(line: str) -> bool:
    """True when the line starts a new log entry rather than continuing one."""
    line = line.strip()
    return bool(LOG_PREFIX.match(line) or LEVEL_PREFIX.match(line))


def is_error_level(level: Optional[str]) -> bool:
    return bool(level) and level.lower() in ERROR_LEVELS


def is_auth_request(url: str) -> bool:
    """True for token/auth endpoints, which are never shown or attributed."""
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url
    return bool(AUTH_PATH.search(path or url))


def is_internal_request(url: str) -> bool:
    """True for calls the runner makes on its own (auth, package feeds, tooling)."""
    lowered = url.lower()
    if any(fragment in lowered for fragment in INTERNAL_URL_FRAGMENTS):
        return True
    return is_auth_request(url)


def extract_url_from_error(line: str) -> Optional[str]:
    """Pull the target address out of a connection error line."""
    match = ERROR_URL.search(line)
    if not match:
        return None
    return next(group for group in match.groups() if group)
