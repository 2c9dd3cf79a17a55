"""Validation utility functions."""

from pathlib import Path
from typing import Union

from tracefuse.constants import SUPPORTED_HTTP_METHODS
from tracefuse.exceptions import ValidationError


def validate_http_method(method: str) -> str:
    """
    Validate and normalise an HTTP method.

    Args:
        method: HTTP method to validate

    Returns:
        The upper-cased method, raises ValidationError otherwise
    """
    method_upper = method.upper()
    if method_upper not in SUPPORTED_HTTP_METHODS:
        raise ValidationError(
            f"Invalid HTTP method: {method}. "
            f"Supported methods: {', '.join(SUPPORTED_HTTP_METHODS)}"
        )
    return method_upper


def validate_http_file_path(path: Union[str, Path]) -> Path:
    """
    Validate that a path names an existing request file.

    Args:
        path: Path of the ``.http`` file

    Returns:
        The path as a Path object, raises ValidationError otherwise
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ValidationError(f"Request file not found: {file_path}")
    if file_path.suffix.lower() not in (".http", ".rest"):
        raise ValidationError(f"Not an .http request file: {file_path}")
    return file_path
