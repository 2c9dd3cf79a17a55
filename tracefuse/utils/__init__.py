"""Utility functions for tracefuse."""

from .validators import (
    validate_http_method,
    validate_http_file_path
)

from .helpers import (
    format_duration,
    format_milliseconds,
    parse_duration_ms,
    sum_durations,
    truncate_string,
    truncate_at_line
)

__all__ = [
    # Validators
    "validate_http_method",
    "validate_http_file_path",
    # Helpers
    "format_duration",
    "format_milliseconds",
    "parse_duration_ms",
    "sum_durations",
    "truncate_string",
    "truncate_at_line"
]
