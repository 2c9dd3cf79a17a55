"""
Log scanner: reconstructs observed requests from a runner execution log.

The log is verbose and human oriented and carries no correlation ids, so the
scanner keeps an ordered list of in-flight entries and attributes each later
line to one of them with the selection predicates from
:mod:`tracefuse.parser.matching`. Every line is classified by the first rule
that claims it, in this order:

1. fatal connection errors
2. request start
3. request body
4. response status
5. response body
6. retry attempt
7. request end

Timeouts and network failures are fatal at any log level; generic exception
wording only on error-level lines. Retry and end markers never count as
connection errors, and neither do body markers, whose payload may quote one.

Scanning never fails on unexpected input. Lines that cannot be attributed are
dropped and logged at debug level; entries still in flight when the log ends
are completed with the same defaults as an end marker without a status.
"""

from typing import Dict, List, Optional, Sequence, Set, Tuple

from tracefuse.config import settings
from tracefuse.constants import (
    ERROR_CONNECTION_REFUSED,
    ERROR_CONNECTION_REFUSED_TO,
    ERROR_EXECUTION_FAILED,
    ERROR_HOST_NOT_FOUND,
    ERROR_TIMEOUT,
    default_status_text,
)
from tracefuse.core.models import (
    ExpectedRequest,
    ObservedRequest,
    RetryAttempt,
    RetryDirective,
    RetryInfo,
    ScanResult,
)
from tracefuse.logger import get_logger
from tracefuse.parser.matching import (
    all_of,
    awaits_response,
    find_expected_request,
    has_response_status,
    has_status,
    has_status_without_body,
    lacks_duration,
    lacks_request_body,
    lacks_response_status,
    same_call,
    select_latest,
    select_oldest,
)
from tracefuse.parser.patterns import (
    CONNECTION_REFUSED,
    HOST_NOT_FOUND,
    NETWORK_ERROR,
    REQUEST_BODY,
    REQUEST_END,
    REQUEST_START,
    RESPONSE_BODY,
    RESPONSE_STATUS_PATTERNS,
    RETRY_ATTEMPT,
    TIMEOUT_ERROR,
    UNHANDLED_ERROR,
    extract_url_from_error,
    has_log_prefix,
    is_error_level,
    is_internal_request,
    split_log_prefix,
)
from tracefuse.utils.helpers import format_milliseconds

logger = get_logger(__name__)

# Status patterns that also terminate a multi-line body block
_BODY_TERMINATING_STATUS = {"status_line", "tool_response", "response_headers"}

StatusMatch = Tuple[int, str, Optional[str]]


def is_success_status(status_code: Optional[int]) -> bool:
    return status_code is not None and 200 <= status_code < 400


def match_status(text: str) -> Optional[StatusMatch]:
    """
    Extract a response status from one line.

    Returns:
        (code, text, duration in ms) for the first pattern that matches; text
        falls back to the default reason phrase and duration may be None
    """
    for _, pattern in RESPONSE_STATUS_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        code = int(match.group("code"))
        groups = match.groupdict()
        status_text = (groups.get("text") or "").strip() or default_status_text(code)
        return code, status_text, groups.get("duration")
    return None


def match_connection_error(text: str) -> Optional[str]:
    """Classify a line that names a connection failure outright."""
    if CONNECTION_REFUSED.search(text):
        url = extract_url_from_error(text)
        return ERROR_CONNECTION_REFUSED_TO.format(url=url) if url else ERROR_CONNECTION_REFUSED
    if HOST_NOT_FOUND.search(text):
        return ERROR_HOST_NOT_FOUND
    return None


class ScanContext:
    """
    State of one scan.

    A fresh context is created for every call to :meth:`LogScanner.scan`, so
    scanning the same log twice yields identical results.
    """

    def __init__(self):
        self.in_flight: List[ObservedRequest] = []
        self.completed: List[ObservedRequest] = []
        self.consumed: Set[int] = set()
        self.sequence = 0
        self.retry_pending = False
        self.connection_error: Optional[str] = None
        self.found_http_request = False

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence

    def latest(self) -> Optional[ObservedRequest]:
        """Most recent in-flight entry, else the most recently completed one."""
        if self.in_flight:
            return self.in_flight[-1]
        if self.completed:
            return self.completed[-1]
        return None

    def finish(self, entry: ObservedRequest) -> None:
        self.in_flight = [item for item in self.in_flight if item is not entry]
        self.completed.append(entry)

    def reopen(self, entry: ObservedRequest) -> None:
        self.completed = [item for item in self.completed if item is not entry]
        self.in_flight.append(entry)

    def to_result(self) -> ScanResult:
        return ScanResult(
            requests=list(self.completed),
            connection_error=self.connection_error,
            found_http_request=self.found_http_request,
        )


class LogScanner:
    """
    Reconstructs the sequence of observed requests from a runner log.

    Args:
        expected: Request declarations from the request file, in file order
        retry_directives: Retry configuration keyed by request name
        body_max_lines: Maximum lines collected for one multi-line body
        retry_lookahead_lines: Lines searched for a retry attempt's outcome
        error_context_lines: Lines searched to classify an unhandled error
    """

    def __init__(
        self,
        expected: Optional[Sequence[ExpectedRequest]] = None,
        retry_directives: Optional[Dict[str, RetryDirective]] = None,
        body_max_lines: Optional[int] = None,
        retry_lookahead_lines: Optional[int] = None,
        error_context_lines: Optional[int] = None,
    ):
        self.expected: List[ExpectedRequest] = list(expected or [])
        self.retry_directives: Dict[str, RetryDirective] = dict(retry_directives or {})
        self.body_max_lines = body_max_lines or settings.body_max_lines
        self.retry_lookahead_lines = retry_lookahead_lines or settings.retry_lookahead_lines
        self.error_context_lines = error_context_lines or settings.error_context_lines

    def scan(self, log_text: str) -> ScanResult:
        """
        Scan a complete log.

        Args:
            log_text: Runner log or captured standard output

        Returns:
            ScanResult: Completed requests in completion order
        """
        ctx = ScanContext()
        lines = (log_text or "").splitlines()

        index = 0
        while index < len(lines):
            index = self._process_line(ctx, lines, index)

        if ctx.in_flight:
            logger.debug(f"Completing {len(ctx.in_flight)} requests left in flight at end of log")
            for entry in list(ctx.in_flight):
                self._complete(ctx, entry)

        logger.debug(
            f"Scanned {len(lines)} log lines: {len(ctx.completed)} requests, "
            f"connection error: {ctx.connection_error or 'none'}"
        )
        return ctx.to_result()

    def _process_line(self, ctx: ScanContext, lines: List[str], index: int) -> int:
        """Apply the first matching rule and return the index of the next unread line."""
        text = lines[index].strip()
        if not text:
            return index + 1

        timestamp, level, _ = split_log_prefix(text)
        structural = bool(RETRY_ATTEMPT.search(text) or REQUEST_END.search(text))
        body_marker = bool(REQUEST_BODY.search(text) or RESPONSE_BODY.search(text))

        if not (structural or body_marker) and self._handle_connection_error(ctx, lines, index, text, level):
            return index + 1

        start_match = REQUEST_START.search(text)
        if start_match:
            self._handle_request_start(ctx, start_match.group("method").upper(), start_match.group("url"))
            return index + 1

        body_match = REQUEST_BODY.search(text)
        if body_match:
            return self._handle_request_body(ctx, lines, index, body_match)

        if not structural:
            status = match_status(text)
            if status:
                self._handle_response(ctx, status)
                return index + 1

        body_match = RESPONSE_BODY.search(text)
        if body_match:
            return self._handle_response_body(ctx, lines, index, body_match)

        if RETRY_ATTEMPT.search(text):
            self._handle_retry(ctx, lines, index, timestamp)
            return index + 1

        end_match = REQUEST_END.search(text)
        if end_match:
            self._handle_request_end(ctx, end_match)

        return index + 1

    # Rule 1

    def _handle_connection_error(
        self,
        ctx: ScanContext,
        lines: List[str],
        index: int,
        text: str,
        level: Optional[str],
    ) -> bool:
        message = match_connection_error(text)
        if message is None and (TIMEOUT_ERROR.search(text) or NETWORK_ERROR.search(text)):
            message = self._classify_error_context(lines, index)
        if message is None and is_error_level(level) and UNHANDLED_ERROR.search(text):
            message = self._classify_error_context(lines, index)
        if message is None:
            return False

        # A later generic error never replaces a specific classification
        if ctx.connection_error is None or message != ERROR_EXECUTION_FAILED:
            ctx.connection_error = message

        entry = select_latest(ctx.in_flight, lacks_response_status)
        if entry is not None and (entry.error_message is None or message != ERROR_EXECUTION_FAILED):
            entry.error_message = message

        logger.debug(f"Connection error at log line {index + 1}: {message}")
        return True

    def _classify_error_context(self, lines: List[str], index: int) -> str:
        end = min(len(lines), index + 1 + self.error_context_lines)
        for cursor in range(index, end):
            text = lines[cursor].strip()
            if CONNECTION_REFUSED.search(text):
                url = extract_url_from_error(text) or "unknown host"
                return ERROR_CONNECTION_REFUSED_TO.format(url=url)
            if HOST_NOT_FOUND.search(text):
                return ERROR_HOST_NOT_FOUND
            if TIMEOUT_ERROR.search(text):
                return ERROR_TIMEOUT
        return ERROR_EXECUTION_FAILED

    # Rule 2

    def _handle_request_start(self, ctx: ScanContext, method: str, url: str) -> None:
        if is_internal_request(url):
            logger.debug(f"Skipping internal request {method} {url}")
            return

        ctx.found_http_request = True

        # A retry never consumes a request declaration
        if ctx.retry_pending:
            ctx.retry_pending = False
            self._absorb_retry_start(ctx, method, url)
            return

        entry = ObservedRequest(method=method, url=url, sequence=ctx.next_sequence())
        declared_index = find_expected_request(method, url, self.expected, ctx.consumed)
        if declared_index is not None:
            ctx.consumed.add(declared_index)
            declared = self.expected[declared_index]
            entry.name = declared.name
            entry.title = declared.title
            entry.template_url = declared.template_url
            entry.request_body = declared.request_body
        else:
            logger.debug(f"No request declaration left for {method} {url}")

        ctx.in_flight.append(entry)

    def _absorb_retry_start(self, ctx: ScanContext, method: str, url: str) -> None:
        """
        Attach a retry-flagged start to the request being retried.

        The same method and URL is preferred; otherwise the latest request with
        the same method takes it, since retries may rewrite the query. A start
        that fits neither becomes an anonymous entry.
        """
        entry = select_latest(ctx.in_flight, same_call(method, url))
        if entry is None and ctx.completed and same_call(method, url)(ctx.completed[-1]):
            entry = ctx.completed[-1]
        if entry is None:
            latest = ctx.latest()
            if latest is not None and latest.method == method:
                entry = latest

        if entry is None:
            logger.debug(f"Retry start {method} {url} matches no earlier request")
            ctx.in_flight.append(ObservedRequest(method=method, url=url, sequence=ctx.next_sequence()))
            return

        if not any(item is entry for item in ctx.in_flight):
            ctx.reopen(entry)
        entry.awaiting_retry = True
        logger.debug(f"Request start for {method} {url} is a retry of {entry.method} {entry.url}")

    # Rules 3 and 5

    def _extract_body(self, lines: List[str], index: int, inline: Optional[str]) -> Tuple[Optional[str], int]:
        """
        Extract a body that starts at a body marker.

        Returns:
            (body or None, index of the first line after the body)
        """
        inline = (inline or "").strip()
        if inline:
            return inline, index + 1

        collected: List[str] = []
        cursor = index + 1
        end = min(len(lines), index + 1 + self.body_max_lines)
        while cursor < end:
            text = lines[cursor].strip()
            if has_log_prefix(text) or self._is_marker(text):
                break
            collected.append(lines[cursor].rstrip())
            cursor += 1

        body = "\n".join(collected).strip()
        return body or None, cursor

    @staticmethod
    def _is_marker(text: str) -> bool:
        if (REQUEST_START.search(text) or REQUEST_BODY.search(text) or RESPONSE_BODY.search(text)
                or REQUEST_END.search(text) or RETRY_ATTEMPT.search(text)):
            return True
        return any(
            pattern.search(text)
            for name, pattern in RESPONSE_STATUS_PATTERNS
            if name in _BODY_TERMINATING_STATUS
        )

    def _handle_request_body(self, ctx: ScanContext, lines: List[str], index: int, match) -> int:
        body, next_index = self._extract_body(lines, index, match.group("inline"))

        entry = ctx.in_flight[-1] if ctx.in_flight else None
        if entry is None:
            logger.debug(f"Request body at log line {index + 1} has no request in flight")
            return next_index

        content_type = match.group("content_type")
        if content_type:
            entry.request_headers.setdefault("Content-Type", content_type.strip())

        # The request file body is authoritative; logs can truncate payloads
        if body and lacks_request_body(entry):
            entry.request_body = body
        return next_index

    def _handle_response_body(self, ctx: ScanContext, lines: List[str], index: int, match) -> int:
        body, next_index = self._extract_body(lines, index, match.group("inline"))

        entry = select_latest(ctx.in_flight, has_status_without_body)
        if entry is None:
            entry = select_latest(ctx.in_flight, has_response_status)
        if entry is None:
            logger.debug(f"Response body at log line {index + 1} has no response to attach to")
            return next_index

        content_type = match.group("content_type")
        if content_type:
            entry.response_headers.setdefault("Content-Type", content_type.strip())

        if body and (not entry.response_body or len(body) > len(entry.response_body)):
            entry.response_body = body
        return next_index

    # Rule 4

    def _handle_response(self, ctx: ScanContext, status: StatusMatch) -> None:
        code, status_text, duration = status

        entry = select_latest(ctx.in_flight, awaits_response)
        if entry is None:
            entry = select_latest(ctx.in_flight, has_status(code))
            if entry is None:
                logger.debug(f"Dropping response status {code} without a matching request")
            else:
                entry.response_status_text = status_text
            return

        entry.response_status = code
        entry.response_status_text = status_text
        entry.awaiting_retry = False
        if duration and entry.duration is None:
            entry.duration = format_milliseconds(float(duration))

    # Rule 6

    def _handle_retry(self, ctx: ScanContext, lines: List[str], index: int, timestamp: Optional[str]) -> None:
        ctx.retry_pending = True

        entry = ctx.latest()
        if entry is None:
            logger.debug(f"Retry marker at log line {index + 1} before any request")
            return

        info = entry.retry_info or RetryInfo()
        if not info.attempts:
            info.attempts.append(self._initial_attempt(entry))

        status_code, status_text, error_message = self._lookahead_attempt(lines, index)
        info.attempts.append(RetryAttempt(
            attempt_number=len(info.attempts) + 1,
            status_code=status_code,
            status_text=status_text,
            error_message=error_message,
            success=is_success_status(status_code),
            timestamp=timestamp,
        ))
        entry.retry_info = info
        entry.awaiting_retry = True

    def _lookahead_attempt(
        self, lines: List[str], index: int
    ) -> Tuple[Optional[int], Optional[str], Optional[str]]:
        """Find the outcome of the attempt announced at ``index``; unknown means failed."""
        end = min(len(lines), index + 1 + self.retry_lookahead_lines)
        for cursor in range(index + 1, end):
            text = lines[cursor].strip()
            if RETRY_ATTEMPT.search(text):
                break
            status = match_status(text)
            if status:
                return status[0], status[1], None
            end_match = REQUEST_END.search(text)
            if end_match and end_match.group("code"):
                code = int(end_match.group("code"))
                return code, default_status_text(code), None
            error = match_connection_error(text)
            if error:
                return None, None, error
        return None, None, None

    @staticmethod
    def _initial_attempt(entry: ObservedRequest) -> RetryAttempt:
        return RetryAttempt(
            attempt_number=1,
            status_code=entry.response_status,
            status_text=entry.response_status_text,
            error_message=entry.error_message,
            success=is_success_status(entry.response_status),
        )

    # Rule 7

    def _handle_request_end(self, ctx: ScanContext, match) -> None:
        code = int(match.group("code")) if match.group("code") else None
        duration = format_milliseconds(float(match.group("duration")))

        entry = (
            select_latest(ctx.in_flight, all_of(has_status(code), lacks_duration))
            or select_latest(ctx.in_flight, has_status(code))
            or select_oldest(ctx.in_flight, lacks_duration)
            or select_oldest(ctx.in_flight, lambda item: True)
        )
        ctx.retry_pending = False
        if entry is None:
            logger.debug(f"End marker ({duration}) without a request in flight")
            return

        if entry.duration is None:
            entry.duration = duration
        if entry.response_status is None and code is not None:
            entry.response_status = code
            entry.response_status_text = default_status_text(code)
        self._complete(ctx, entry)

    # Completion

    def _complete(self, ctx: ScanContext, entry: ObservedRequest) -> None:
        if entry.response_status is None:
            if entry.error_message:
                logger.debug(f"{entry.method} {entry.url} failed without a response: {entry.error_message}")
            else:
                logger.debug(f"No status logged for {entry.method} {entry.url}, assuming 200 OK")
                entry.response_status = 200
                entry.response_status_text = default_status_text(200)
                entry.status_assumed = True
        elif not entry.response_status_text:
            entry.response_status_text = default_status_text(entry.response_status)

        self._merge_retry_directive(entry)
        entry.awaiting_retry = False
        ctx.finish(entry)

    def _merge_retry_directive(self, entry: ObservedRequest) -> None:
        directive = self.retry_directives.get(entry.name) if entry.name else None
        if directive is None:
            return

        info = entry.retry_info or RetryInfo(attempts=[self._initial_attempt(entry)])
        info.strategy_name = info.strategy_name or directive.strategy_name
        info.max_attempts = info.max_attempts if info.max_attempts is not None else directive.max_attempts
        info.backoff_type = info.backoff_type or directive.backoff_type
        entry.retry_info = info
