"""Base formatter class for request group output formats."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from tracefuse.core.models import RequestGroup, RequestTraceResult
from tracefuse.exceptions import FormatterError


class BaseFormatter(ABC):
    """Abstract base class for request group formatters."""

    def __init__(self, output_path: Optional[Path] = None):
        """Initialize formatter.

        Args:
            output_path: Optional output file path
        """
        self.output_path = Path(output_path) if output_path else None

    @abstractmethod
    def format(self, group: RequestGroup) -> str:
        """Format a request group to the output format.

        Args:
            group: Assembled request group

        Returns:
            Formatted output as string
        """
        pass

    @abstractmethod
    def format_result(self, result: RequestTraceResult) -> Dict[str, Any]:
        """Format an individual result.

        Args:
            result: Single request result

        Returns:
            Formatted result
        """
        pass

    def write(self, group: RequestGroup) -> None:
        """Write formatted output to file.

        Args:
            group: Request group to format and write

        Raises:
            FormatterError: If writing fails
        """
        if not self.output_path:
            raise FormatterError("No output path specified")

        try:
            formatted = self.format(group)
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.write_text(formatted, encoding="utf-8")
        except (OSError, ValueError) as e:
            raise FormatterError(f"Failed to write output: {str(e)}") from e

    @staticmethod
    def safe_json_string(obj: Any) -> str:
        """Convert object to JSON string safely.

        Args:
            obj: Object to convert

        Returns:
            JSON string or empty string if None
        """
        if obj is None:
            return ""

        try:
            return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError):
            return str(obj)
