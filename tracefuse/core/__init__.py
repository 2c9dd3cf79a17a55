"""Core data models shared by the parsers, the assembler and the runner."""

from .models import (
    ExpectedRequest,
    ObservedRequest,
    OutcomeIndex,
    RequestDetails,
    RequestGroup,
    RequestTraceResult,
    ResponseDetails,
    RetryAttempt,
    RetryDirective,
    RetryInfo,
    ScanResult,
    TestOutcome,
    TestReport,
    TraceStatus,
)

__all__ = [
    "ExpectedRequest",
    "ObservedRequest",
    "OutcomeIndex",
    "RequestDetails",
    "RequestGroup",
    "RequestTraceResult",
    "ResponseDetails",
    "RetryAttempt",
    "RetryDirective",
    "RetryInfo",
    "ScanResult",
    "TestOutcome",
    "TestReport",
    "TraceStatus",
]
