"""Parsers for the request file, the runner log and the XML report."""

from .http_file import parse_http_file, read_http_file
from .log_scanner import LogScanner, ScanContext
from .report import ReportParser, distribute_outcomes, parse_report, read_report
from .retry_directives import parse_retry_directives

__all__ = [
    "LogScanner",
    "ReportParser",
    "ScanContext",
    "distribute_outcomes",
    "parse_http_file",
    "parse_report",
    "parse_retry_directives",
    "read_http_file",
    "read_report",
]
