"""
Static parser for .http request files.

Produces the ordered list of request declarations that the log scanner uses as
its oracle for names, titles, template URLs and request bodies. The file is
user-edited and may be saved in a transiently invalid state, so parsing never
fails: malformed blocks simply yield fewer or less complete declarations.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union

from tracefuse.constants import BODY_HTTP_METHODS
from tracefuse.core.models import ExpectedRequest
from tracefuse.exceptions import HttpFileReadError
from tracefuse.logger import get_logger
from tracefuse.parser.patterns import (
    BODY_COMMENT_PREFIXES,
    METHOD_LINE,
    NAME_DIRECTIVE,
    REQUEST_BOUNDARY,
    TEST_DIRECTIVE,
    TITLE_LINE,
)

logger = get_logger(__name__)


def parse_http_file(text: str) -> List[ExpectedRequest]:
    """
    Parse request declarations from the text of a .http file.

    Args:
        text: File content

    Returns:
        List[ExpectedRequest]: Declarations in file order
    """
    lines = text.splitlines()
    requests: List[ExpectedRequest] = []

    last_name: Optional[str] = None
    last_title: Optional[str] = None
    pending_tests = 0

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()

        if TEST_DIRECTIVE.match(line):
            pending_tests += 1
            continue

        name_match = NAME_DIRECTIVE.match(line)
        if name_match:
            last_name = name_match.group("name").strip()
            continue

        title_match = TITLE_LINE.match(line)
        if title_match:
            last_title = title_match.group("title").strip()
            continue

        method_match = METHOD_LINE.match(line)
        if not method_match:
            continue

        method = method_match.group("method").upper()
        template_url = method_match.group("url").strip()
        request_body = None
        if method in BODY_HTTP_METHODS:
            request_body = extract_request_body(lines, index)

        requests.append(ExpectedRequest(
            name=last_name,
            title=last_title,
            method=method,
            url=template_url,
            template_url=template_url,
            request_body=request_body,
            test_directive_count=pending_tests,
        ))
        last_name = None
        last_title = None
        pending_tests = 0

    logger.debug(f"Parsed {len(requests)} request declarations from request file")
    return requests


def extract_request_body(lines: Sequence[str], method_index: int) -> Optional[str]:
    """
    Extract the inline body that follows a method line.

    Header lines are skipped up to the first blank line; after it, every
    non-comment line is collected until the next request boundary or method line.

    Args:
        lines: All lines of the file
        method_index: Index of the method line

    Returns:
        The body, or None when the request has none
    """
    body_lines: List[str] = []
    seen_blank = False
    in_body = False

    for raw_line in lines[method_index + 1:]:
        line = raw_line.strip()

        if REQUEST_BOUNDARY.match(line) or METHOD_LINE.match(line):
            break

        if not in_body:
            if not line:
                seen_blank = True
                continue
            if not seen_blank:
                continue
            in_body = True

        if line.startswith(BODY_COMMENT_PREFIXES):
            continue
        body_lines.append(raw_line)

    body = "\n".join(body_lines).strip()
    return body or None


def read_http_file(path: Union[str, Path]) -> str:
    """
    Read a request file.

    Raises:
        HttpFileReadError: If the file cannot be read
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise HttpFileReadError(f"Failed to read request file {path}: {e}") from e
