"""Output formatters for request groups."""

from tracefuse.exceptions import FormatterError

from .base import BaseFormatter
from .csv_formatter import CSVFormatter
from .json_formatter import JSONFormatter

__all__ = ["BaseFormatter", "CSVFormatter", "FormatterError", "JSONFormatter"]
