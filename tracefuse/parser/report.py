"""
XML test report parsing and outcome distribution.

The report is JUnit-like: ``<testsuite name>`` elements containing
``<testcase name>`` elements that may contain ``<failure>``, ``<error>`` or
``<skipped>``. Extraction is pattern based so that truncated or slightly
malformed reports still yield every complete test case.
"""

import html
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from tracefuse.config import settings
from tracefuse.core.models import ExpectedRequest, OutcomeIndex, TestOutcome, TestReport
from tracefuse.logger import get_logger
from tracefuse.parser.patterns import (
    CDATA,
    FAILURE,
    FAILURE_INDICATORS,
    SKIPPED,
    TESTCASE,
    TESTSUITE,
    XML_ATTRIBUTE,
)
from tracefuse.utils.helpers import truncate_at_line

logger = get_logger(__name__)

_TAG = re.compile(r"<[^>]+>")


def parse_attributes(attrs: Optional[str]) -> Dict[str, str]:
    """Decode the attributes of one XML start tag."""
    if not attrs:
        return {}
    return {
        match.group("key"): html.unescape(
            match.group("dq") if match.group("dq") is not None else match.group("sq")
        )
        for match in XML_ATTRIBUTE.finditer(attrs)
    }


def element_text(body: Optional[str]) -> str:
    """Text content of an element body with CDATA unwrapped and entities decoded."""
    if not body:
        return ""
    sections = [match.group("text") for match in CDATA.finditer(body)]
    if sections:
        return "\n".join(section.strip() for section in sections).strip()
    return html.unescape(_TAG.sub("", body)).strip()


class ReportParser:
    """Parser for JUnit-like XML reports."""

    def __init__(self, message_limit: Optional[int] = None):
        self.message_limit = message_limit or settings.failure_message_limit

    def parse(self, xml_text: Optional[str]) -> TestReport:
        """
        Parse report text into outcomes in document order.

        Args:
            xml_text: Report content, or None when no report exists

        Returns:
            TestReport: Parsed outcomes; empty for missing or unusable input
        """
        report = TestReport()
        if not xml_text or not xml_text.strip():
            return report

        suites = list(TESTSUITE.finditer(xml_text))
        if suites:
            for suite_match in suites:
                suite_name = parse_attributes(suite_match.group("attrs")).get("name", "")
                cases = self._parse_cases(suite_match.group("body"), suite_name)
                report.outcomes.extend(cases)
        else:
            # Bare <testcase> elements without a surrounding suite
            report.outcomes.extend(self._parse_cases(xml_text, ""))

        logger.debug(
            f"Parsed report with {len(suites)} suites and {len(report.outcomes)} test cases"
        )
        return report

    def _parse_cases(self, body: Optional[str], suite_name: str) -> List[TestOutcome]:
        if not body:
            return []
        return [
            self._parse_case(case_match.group("attrs"), case_match.group("body"), suite_name)
            for case_match in TESTCASE.finditer(body)
        ]

    def _parse_case(self, attrs: str, body: Optional[str], suite_name: str) -> TestOutcome:
        name = parse_attributes(attrs).get("name") or "Unnamed test"
        body = body or ""

        failure_match = FAILURE.search(body)
        if failure_match:
            message = parse_attributes(failure_match.group("attrs")).get("message")
            if not message:
                message = element_text(failure_match.group("body"))
            return TestOutcome(
                name=name,
                passed=False,
                message=self._truncate(message),
                suite=suite_name or None,
            )

        if SKIPPED.search(body):
            return TestOutcome(name=name, passed=True, suite=suite_name or None, skipped=True)

        text = element_text(body)
        if any(indicator in text for indicator in FAILURE_INDICATORS):
            return TestOutcome(
                name=name,
                passed=False,
                message=self._truncate(text),
                suite=suite_name or None,
            )

        return TestOutcome(name=name, passed=True, suite=suite_name or None)

    def _truncate(self, message: Optional[str]) -> Optional[str]:
        if not message:
            return None
        return truncate_at_line(message, self.message_limit)


def parse_report(xml_text: Optional[str]) -> TestReport:
    """Parse report text with the configured message limit."""
    return ReportParser().parse(xml_text)


def distribute_outcomes(report: TestReport, expected: Sequence[ExpectedRequest]) -> OutcomeIndex:
    """
    Assign report outcomes to request declarations by position.

    Walking the declarations in file order, every request that declares K inline
    test directives takes the next K outcomes in document order. Whatever is left
    belongs to script-level tests; when no request declares directives that is
    every outcome.

    Args:
        report: Parsed report
        expected: Request declarations in file order

    Returns:
        OutcomeIndex: Outcomes keyed by request plus the custom bucket
    """
    index = OutcomeIndex()
    if report.is_empty:
        logger.debug("Report has no test cases to distribute")
        return index

    outcomes = report.outcomes
    cursor = 0

    for request in expected:
        if not request.has_test_directives:
            continue
        if cursor >= len(outcomes):
            break
        taken = outcomes[cursor:cursor + request.test_directive_count]
        index.by_request.setdefault(request.report_key, []).extend(taken)
        cursor += len(taken)

    index.custom = list(outcomes[cursor:])
    if index.custom:
        logger.debug(f"{len(index.custom)} report outcomes left for script-level tests")
    return index


def read_report(path: Union[str, Path]) -> Optional[str]:
    """
    Read a report file.

    Returns:
        The report text, or None when it does not exist or cannot be read
    """
    report_path = Path(path)
    if not report_path.exists():
        logger.warning(f"Test report not found: {report_path}")
        return None
    try:
        return report_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read test report {report_path}: {e}")
        return None
