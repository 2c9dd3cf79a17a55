"""CSV formatter for request group output."""

import csv
import io
from pathlib import Path
from typing import Any, Dict, List, Optional

from tracefuse.core.models import RequestGroup, RequestTraceResult, TestOutcome

from .base import BaseFormatter


class CSVFormatter(BaseFormatter):
    """Formats request results as CSV, one row per result."""

    # CSV column headers in order
    CSV_HEADERS = [
        "name",
        "status",
        "method",
        "url",
        "template_url",
        "status_code",
        "status_text",
        "duration",
        "request_headers",
        "request_body",
        "response_headers",
        "response_body",
        "tests_passed",
        "tests_failed",
        "failed_tests",
        "attempts",
        "error_message",
    ]

    def __init__(self, output_path: Optional[Path] = None,
                 delimiter: str = ",",
                 include_group_info: bool = True):
        """Initialize CSV formatter.

        Args:
            output_path: Output file path
            delimiter: CSV delimiter (default: comma)
            include_group_info: Include group metadata as comments
        """
        super().__init__(output_path)
        self.delimiter = delimiter
        self.include_group_info = include_group_info

    def format(self, group: RequestGroup) -> str:
        """Format a request group to CSV.

        Args:
            group: Assembled request group

        Returns:
            CSV formatted string
        """
        output = io.StringIO()

        if self.include_group_info:
            output.write(f"# Request file: {group.file_path}\n")
            output.write(f"# Status: {group.status.value}\n")
            output.write(f"# Duration: {group.duration}\n")
            output.write("#\n")

        writer = csv.DictWriter(
            output,
            fieldnames=self.CSV_HEADERS,
            delimiter=self.delimiter,
            quoting=csv.QUOTE_MINIMAL
        )
        writer.writeheader()

        for result in group.results:
            writer.writerow(self.format_result(result))

        return output.getvalue()

    def format_result(self, result: RequestTraceResult) -> Dict[str, Any]:
        """Format an individual result as a CSV row.

        Args:
            result: Request result

        Returns:
            Formatted row
        """
        request = result.request
        response = result.response
        failed = [test for test in result.tests if not test.passed]

        return {
            "name": result.name,
            "status": result.status.value,
            "method": request.method if request else "",
            "url": request.url if request else "",
            "template_url": (request.template_url or "") if request else "",
            "status_code": response.status_code if response else "",
            "status_text": response.status_text if response else "",
            "duration": result.duration,
            "request_headers": self._format_headers(request.headers if request else None),
            "request_body": (request.body or "") if request else "",
            "response_headers": self._format_headers(response.headers if response else None),
            "response_body": (response.body or "") if response else "",
            "tests_passed": len(result.tests) - len(failed),
            "tests_failed": len(failed),
            "failed_tests": self._format_failed_tests(failed),
            "attempts": result.retry_info.actual_attempts if result.retry_info else "",
            "error_message": result.error_message or "",
        }

    def _format_headers(self, headers: Optional[Dict[str, str]]) -> str:
        """Format headers for CSV.

        Args:
            headers: Headers dictionary

        Returns:
            Formatted headers string
        """
        if not headers:
            return ""

        # For common single header, use key=value
        if len(headers) == 1 and "Content-Type" in headers:
            return f"Content-Type={headers['Content-Type']}"

        return self.safe_json_string(headers)

    def _format_failed_tests(self, tests: List[TestOutcome]) -> str:
        if not tests:
            return ""
        return "; ".join(test.name for test in tests)
