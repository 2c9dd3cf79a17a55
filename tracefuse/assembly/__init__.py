"""Assembly of the final request group."""

from .assembler import (
    TraceAssembler,
    attribute_outcomes,
    classify_error,
    create_failed_group,
    deduplicate_requests,
    is_request_passed,
)

__all__ = [
    "TraceAssembler",
    "attribute_outcomes",
    "classify_error",
    "create_failed_group",
    "deduplicate_requests",
    "is_request_passed",
]
