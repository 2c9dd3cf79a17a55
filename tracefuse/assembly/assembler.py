"""
Trace assembly.

Merges the observed requests of a log scan with the distributed report
outcomes and produces the final :class:`RequestGroup` for one request file.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from tracefuse.constants import (
    ERROR_CONNECTION_REFUSED,
    ERROR_EXECUTION_FAILED,
    ERROR_HOST_NOT_FOUND,
    ERROR_NO_HTTP_FOUND,
    ERROR_TIMEOUT,
    EXECUTION_FAILED_RESULT_NAME,
    NO_REQUESTS_RESULT_NAME,
    SCRIPT_TESTS_RESULT_NAME,
    ZERO_DURATION,
    default_status_text,
)
from tracefuse.core.models import (
    ObservedRequest,
    OutcomeIndex,
    RequestDetails,
    RequestGroup,
    RequestTraceResult,
    ResponseDetails,
    ScanResult,
    TestOutcome,
    TraceStatus,
)
from tracefuse.logger import get_logger
from tracefuse.parser.patterns import CONNECTION_REFUSED, HOST_NOT_FOUND, TIMEOUT_ERROR, is_internal_request
from tracefuse.utils.helpers import format_duration, sum_durations

logger = get_logger(__name__)


def classify_error(error_text: Optional[str]) -> str:
    """
    Map exception or process output text to a user-facing message.

    Args:
        error_text: Exception message or captured output

    Returns:
        One of the fixed connection error messages
    """
    text = error_text or ""
    if CONNECTION_REFUSED.search(text):
        return ERROR_CONNECTION_REFUSED
    if HOST_NOT_FOUND.search(text):
        return ERROR_HOST_NOT_FOUND
    if "timeout" in text.lower() or TIMEOUT_ERROR.search(text):
        return ERROR_TIMEOUT
    return ERROR_EXECUTION_FAILED


def is_request_passed(status_code: Optional[int], tests: Sequence[TestOutcome]) -> bool:
    """A request passes with a 2xx/3xx status and no failed test."""
    if status_code is None or not 200 <= status_code < 400:
        return False
    return all(test.passed for test in tests)


def create_failed_group(
    file_path: Union[str, Path],
    error_message: str,
    result_name: str = EXECUTION_FAILED_RESULT_NAME,
) -> RequestGroup:
    """Build a group holding a single synthetic failed result."""
    return RequestGroup(
        name=Path(file_path).stem,
        file_path=str(file_path),
        results=[RequestTraceResult(
            name=result_name,
            status=TraceStatus.FAILED,
            duration=ZERO_DURATION,
            error_message=error_message,
        )],
        status=TraceStatus.FAILED,
        duration=format_duration(ZERO_DURATION),
    )


def deduplicate_requests(requests: Iterable[ObservedRequest]) -> List[ObservedRequest]:
    """
    Drop anonymous duplicates of named requests.

    Requests are grouped by method and URL. When a group contains a request
    with a name or title, its anonymous members are discarded; otherwise every
    member is kept. First-occurrence order is preserved.
    """
    requests = list(requests)
    named_keys = {(request.method, request.url) for request in requests if request.is_named}

    kept = []
    for request in requests:
        if request.is_named or (request.method, request.url) not in named_keys:
            kept.append(request)
        else:
            logger.debug(f"Dropping anonymous duplicate of {request.method} {request.url}")
    return kept


def attribute_outcomes(request: ObservedRequest, outcomes: OutcomeIndex) -> List[TestOutcome]:
    """
    Look up the report outcomes of one request.

    The lookup goes by name, then title, then the ``METHOD template`` label
    that declarations without name or title are indexed under. Nothing is
    guessed beyond that.
    """
    if is_internal_request(request.url):
        return []
    label = f"{request.method} {request.template_url}" if request.template_url else None
    return outcomes.lookup(request.name, request.title, label)


class TraceAssembler:
    """Builds the final request group from a scan and the report outcomes."""

    def assemble(
        self,
        scan: ScanResult,
        outcomes: OutcomeIndex,
        file_path: Union[str, Path],
    ) -> RequestGroup:
        """
        Assemble the results of one executed request file.

        Args:
            scan: Log scan result
            outcomes: Report outcomes distributed over the declarations
            file_path: Path of the executed request file

        Returns:
            RequestGroup: Ordered, deduplicated results
        """
        requests = [request for request in scan.requests if not is_internal_request(request.url)]

        if not requests:
            if scan.connection_error:
                logger.info(f"Run failed before any request completed: {scan.connection_error}")
                return create_failed_group(file_path, scan.connection_error)
            logger.info(f"No HTTP requests found in log for {file_path}")
            return create_failed_group(file_path, ERROR_NO_HTTP_FOUND, NO_REQUESTS_RESULT_NAME)

        results = [
            self.build_result(request, attribute_outcomes(request, outcomes))
            for request in deduplicate_requests(requests)
        ]

        if outcomes.custom:
            results.append(self.build_script_result(outcomes.custom))

        status = TraceStatus.PASSED if all(result.passed for result in results) else TraceStatus.FAILED
        group = RequestGroup(
            name=Path(file_path).stem,
            file_path=str(file_path),
            results=results,
            status=status,
            duration=sum_durations(result.duration for result in results),
        )
        logger.info(
            f"Assembled {len(results)} results for {group.name}: "
            f"{group.passed_count} passed, {group.failed_count} failed"
        )
        return group

    def build_result(self, request: ObservedRequest, tests: List[TestOutcome]) -> RequestTraceResult:
        """Freeze one observed request into a result record."""
        duration = request.duration or ZERO_DURATION
        passed = is_request_passed(request.response_status, tests)

        response = None
        if request.response_status is not None:
            response = ResponseDetails(
                status_code=request.response_status,
                status_text=request.response_status_text or default_status_text(request.response_status),
                headers=dict(request.response_headers),
                body=request.response_body,
                duration=duration,
            )

        error_message = request.error_message
        if error_message is None and response is not None and not 200 <= response.status_code < 400:
            error_message = f"HTTP {response.status_code} {response.status_text}"

        return RequestTraceResult(
            name=request.display_name,
            status=TraceStatus.PASSED if passed else TraceStatus.FAILED,
            duration=duration,
            request=RequestDetails(
                method=request.method,
                url=request.url,
                template_url=request.template_url,
                headers=dict(request.request_headers),
                body=request.request_body,
            ),
            response=response,
            error_message=error_message,
            tests=list(tests),
            retry_info=request.retry_info.model_copy(deep=True) if request.retry_info else None,
        )

    def build_script_result(self, tests: List[TestOutcome]) -> RequestTraceResult:
        """Synthetic result for outcomes that belong to no single request."""
        passed = all(test.passed for test in tests)
        return RequestTraceResult(
            name=SCRIPT_TESTS_RESULT_NAME,
            status=TraceStatus.PASSED if passed else TraceStatus.FAILED,
            duration=ZERO_DURATION,
            tests=list(tests),
        )
