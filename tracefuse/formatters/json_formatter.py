"""JSON formatter for request groups."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from tracefuse.config import settings
from tracefuse.core.models import RequestGroup, RequestTraceResult

from .base import BaseFormatter


class JSONFormatter(BaseFormatter):
    """Serializes a request group as JSON using the model field names."""

    def __init__(self, output_path: Optional[Path] = None, indent: Optional[int] = None):
        super().__init__(output_path)
        self.indent = settings.output_indent if indent is None else indent

    def format(self, group: RequestGroup) -> str:
        payload = group.model_dump(mode="json")
        return json.dumps(payload, indent=self.indent or None, ensure_ascii=False) + "\n"

    def format_result(self, result: RequestTraceResult) -> Dict[str, Any]:
        return result.model_dump(mode="json")
