"""
Reconciliation pipeline.

Runs the static request file parsers, the report parser and the log scanner
over one set of artefacts and hands their output to the assembler.
"""

from pathlib import Path
from typing import Optional, Union

from tracefuse.assembly.assembler import TraceAssembler
from tracefuse.core.models import RequestGroup
from tracefuse.exceptions import LogReadError
from tracefuse.logger import get_logger
from tracefuse.parser.http_file import parse_http_file, read_http_file
from tracefuse.parser.log_scanner import LogScanner
from tracefuse.parser.report import distribute_outcomes, parse_report, read_report
from tracefuse.parser.retry_directives import parse_retry_directives

logger = get_logger(__name__)


def trace_run(
    http_text: str,
    log_text: str,
    report_text: Optional[str],
    file_path: Union[str, Path],
) -> RequestGroup:
    """
    Reconcile one run from in-memory artefacts.

    Args:
        http_text: Content of the executed request file
        log_text: Runner log or captured output
        report_text: XML report content, or None when unavailable
        file_path: Path of the executed request file, used for naming

    Returns:
        RequestGroup: Assembled results
    """
    expected = parse_http_file(http_text)
    directives = parse_retry_directives(http_text)
    report = parse_report(report_text)
    outcomes = distribute_outcomes(report, expected)

    scan = LogScanner(expected, directives).scan(log_text)
    return TraceAssembler().assemble(scan, outcomes, file_path)


def read_log(path: Union[str, Path]) -> str:
    """
    Read a runner log.

    Raises:
        LogReadError: If the log cannot be read
    """
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise LogReadError(f"Failed to read log file {path}: {e}") from e


def trace_files(
    http_path: Union[str, Path],
    log_path: Union[str, Path],
    report_path: Optional[Union[str, Path]] = None,
) -> RequestGroup:
    """
    Reconcile one run from artefacts on disk.

    A missing or unreadable report counts as a report without outcomes.

    Raises:
        HttpFileReadError: If the request file cannot be read
        LogReadError: If the log cannot be read
    """
    http_text = read_http_file(http_path)
    log_text = read_log(log_path)
    report_text = read_report(report_path) if report_path else None

    logger.info(f"Reconciling {http_path} with log {log_path}")
    return trace_run(http_text, log_text, report_text, http_path)
