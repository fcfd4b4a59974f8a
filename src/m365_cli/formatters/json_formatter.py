"""JSON output formatter."""

import json
from typing import Any
from .base import OutputFormatter


class JSONFormatter(OutputFormatter):
    """Format output as JSON.

    Response bodies are emitted as received: keys keep their order and
    non-ASCII text is not escaped.
    """

    def format(self, data: Any, **kwargs) -> str:
        """Format data as JSON.

        Args:
            data: Data to format
            **kwargs: Options including:
                - indent: Indentation level (default: 2)
                - compact: Single line output (default: False)

        Returns:
            JSON formatted string
        """
        if isinstance(data, str):
            return data

        indent = None if kwargs.get('compact', False) else kwargs.get('indent', 2)

        return json.dumps(data, indent=indent, ensure_ascii=False)
