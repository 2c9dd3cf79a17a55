"""Static parser for per-request retry directives in .http files."""

import re
from typing import Any, Dict, List, Optional

from tracefuse.core.models import RetryDirective
from tracefuse.logger import get_logger
from tracefuse.parser.patterns import NAME_DIRECTIVE, REQUEST_BOUNDARY, RETRY_DIRECTIVE

logger = get_logger(__name__)

_INTEGER = re.compile(r"^\d+")


def _parse_int(value: str) -> int:
    match = _INTEGER.match(value.strip())
    if not match:
        raise ValueError(f"not an integer: {value!r}")
    return int(match.group(0))


def _parse_status_list(value: str) -> List[int]:
    codes = [int(code) for code in re.findall(r"\d{3}", value)]
    if not codes:
        raise ValueError(f"no status codes in {value!r}")
    return codes


def _parse_text(value: str) -> str:
    text = value.strip().strip("\"'")
    if not text:
        raise ValueError("empty value")
    return text


# Directive key -> (RetryDirective field, decoder)
_KNOWN_KEYS: Dict[str, tuple] = {
    "STRATEGY": ("strategy_name", _parse_text),
    "MAX-ATTEMPTS": ("max_attempts", _parse_int),
    "BACKOFF-TYPE": ("backoff_type", _parse_text),
    "MAX-DELAY": ("max_delay", _parse_int),
    "UNTIL-STATUS": ("until_status", _parse_status_list),
}


def parse_retry_directives(text: str) -> Dict[str, RetryDirective]:
    """
    Collect retry configuration per declared request name.

    A ``###`` boundary starts a new block and forgets the current name.
    ``## RETRY-<KEY>: value`` lines attach to the block's ``# @name``; lines that
    appear before the name inside the same block are held until it is seen.

    Args:
        text: Content of the .http file

    Returns:
        Dict[str, RetryDirective]: Directives keyed by request name
    """
    collected: Dict[str, Dict[str, Any]] = {}
    current_name: Optional[str] = None
    held: Dict[str, Any] = {}

    for raw_line in text.splitlines():
        line = raw_line.strip()

        if REQUEST_BOUNDARY.match(line):
            if held:
                logger.debug(f"Dropping retry directives without a request name: {sorted(held)}")
            current_name = None
            held = {}
            continue

        name_match = NAME_DIRECTIVE.match(line)
        if name_match:
            current_name = name_match.group("name").strip()
            if held:
                collected.setdefault(current_name, {}).update(held)
                held = {}
            continue

        directive_match = RETRY_DIRECTIVE.match(line)
        if not directive_match:
            continue

        key = directive_match.group("key").upper()
        known = _KNOWN_KEYS.get(key)
        if known is None:
            logger.debug(f"Ignoring unknown retry directive RETRY-{key}")
            continue

        field_name, decode = known
        try:
            value = decode(directive_match.group("value"))
        except ValueError as e:
            logger.debug(f"Ignoring undecodable retry directive RETRY-{key}: {e}")
            continue

        if current_name is None:
            held[field_name] = value
        else:
            collected.setdefault(current_name, {})[field_name] = value

    return {
        name: RetryDirective(request_name=name, **fields)
        for name, fields in collected.items()
    }
