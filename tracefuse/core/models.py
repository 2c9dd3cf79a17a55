"""Core data models for tracefuse."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from tracefuse.utils.validators import validate_http_method


class ExpectedRequest(BaseModel):
    """A request declaration found in the .http file, in file order."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = Field(None, description="Value of the '# @name' line")
    title: Optional[str] = Field(None, description="Value of the '### title' line")
    method: str = Field(..., description="HTTP method")
    url: str = Field(..., description="URL as written in the file")
    template_url: str = Field(..., description="URL with unresolved {{variables}}")
    request_body: Optional[str] = Field(None, description="Inline request body")
    test_directive_count: int = Field(default=0, ge=0, description="Inline '## TEST-' directives")

    @field_validator("method", mode="before")
    @classmethod
    def validate_method(cls, v: str) -> str:
        """Convert method to uppercase and reject unknown verbs."""
        return validate_http_method(v)

    @property
    def has_test_directives(self) -> bool:
        return self.test_directive_count > 0

    @property
    def label(self) -> str:
        """Positional label used when neither name nor title is declared."""
        return f"{self.method} {self.template_url}"

    @property
    def report_key(self) -> str:
        """Key under which report outcomes for this request are indexed."""
        return self.name or self.title or self.label


class RetryDirective(BaseModel):
    """Retry configuration declared for one named request."""

    model_config = ConfigDict(frozen=True)

    request_name: str
    strategy_name: Optional[str] = None
    max_attempts: Optional[int] = Field(None, ge=0)
    backoff_type: Optional[str] = None
    max_delay: Optional[int] = Field(None, ge=0, description="Maximum delay between retries")
    until_status: List[int] = Field(default_factory=list, description="Retry until one of these codes")


class RetryAttempt(BaseModel):
    """One try of an observed request. Attempt 1 is the initial try."""

    attempt_number: int = Field(..., ge=1)
    status_code: Optional[int] = None
    status_text: Optional[str] = None
    error_message: Optional[str] = None
    success: bool = False
    timestamp: Optional[str] = None


class RetryInfo(BaseModel):
    """Retry history of an observed request."""

    attempts: List[RetryAttempt] = Field(default_factory=list)
    strategy_name: Optional[str] = None
    max_attempts: Optional[int] = None
    backoff_type: Optional[str] = None

    @computed_field
    @property
    def actual_attempts(self) -> int:
        return len(self.attempts)

    @computed_field
    @property
    def was_retried(self) -> bool:
        return len(self.attempts) > 1


class ObservedRequest(BaseModel):
    """
    A request reconstructed from the execution log.

    Instances are mutated in place while the scanner reads the log and are
    treated as read-only once the scan result is returned.
    """

    method: str
    url: str
    request_headers: Dict[str, str] = Field(default_factory=dict)
    response_headers: Dict[str, str] = Field(default_factory=dict)
    request_body: Optional[str] = None
    response_status: Optional[int] = None
    response_status_text: Optional[str] = None
    response_body: Optional[str] = None
    duration: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    template_url: Optional[str] = None
    retry_info: Optional[RetryInfo] = None
    error_message: Optional[str] = Field(None, description="Connection failure logged while in flight")
    status_assumed: bool = Field(
        default=False,
        description="True when no status was logged and 200 OK was assumed"
    )
    sequence: int = Field(default=0, exclude=True, description="Start order within the scan")
    awaiting_retry: bool = Field(default=False, exclude=True)

    @property
    def is_named(self) -> bool:
        return bool(self.name or self.title)

    @property
    def display_name(self) -> str:
        return self.name or self.title or f"{self.method} {self.url}"


class TestOutcome(BaseModel):
    """One assertion result from the XML report."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    message: Optional[str] = None
    suite: Optional[str] = None
    skipped: bool = False


class TraceStatus(str, Enum):
    """Overall outcome of a request or group."""

    PASSED = "Passed"
    FAILED = "Failed"


class RequestDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    template_url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None


class ResponseDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: int
    status_text: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    duration: str


class RequestTraceResult(BaseModel):
    """Final, immutable outcome of one logical request."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: TraceStatus
    duration: str
    request: Optional[RequestDetails] = None
    response: Optional[ResponseDetails] = None
    error_message: Optional[str] = None
    tests: List[TestOutcome] = Field(default_factory=list)
    retry_info: Optional[RetryInfo] = None

    @property
    def passed(self) -> bool:
        return self.status == TraceStatus.PASSED


class RequestGroup(BaseModel):
    """Ordered, deduplicated results for one executed request file."""

    model_config = ConfigDict(frozen=True)

    name: str
    file_path: str
    results: List[RequestTraceResult] = Field(default_factory=list)
    status: TraceStatus
    duration: str

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)

    @property
    def failed_count(self) -> int:
        return len(self.results) - self.passed_count


class ScanResult(BaseModel):
    """Output of one log scan."""

    requests: List[ObservedRequest] = Field(default_factory=list)
    connection_error: Optional[str] = None
    found_http_request: bool = False


class TestReport(BaseModel):
    """
    Outcomes of an XML report in document order.

    Suites that share a name stay apart; each outcome carries its own suite.
    """

    __test__ = False

    outcomes: List[TestOutcome] = Field(default_factory=list)

    @property
    def suite_names(self) -> List[str]:
        """Suite names in order of first appearance."""
        return list(dict.fromkeys(outcome.suite or "" for outcome in self.outcomes))

    @property
    def is_empty(self) -> bool:
        return not self.outcomes


class OutcomeIndex(BaseModel):
    """Report outcomes attributed to request keys plus the custom-tests bucket."""

    by_request: Dict[str, List[TestOutcome]] = Field(default_factory=dict)
    custom: List[TestOutcome] = Field(default_factory=list)

    def lookup(self, *keys: Optional[str]) -> List[TestOutcome]:
        """Return the outcomes of the first key that has any."""
        for key in keys:
            if key and key in self.by_request:
                return list(self.by_request[key])
        return []
