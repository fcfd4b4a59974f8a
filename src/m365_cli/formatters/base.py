"""Base formatter classes and registry."""

import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class OutputFormatter(ABC):
    """Abstract base class for output formatters."""

    @abstractmethod
    def format(self, data: Any, **kwargs) -> str:
        """Format a response payload for output.

        Args:
            data: Parsed response body
            **kwargs: Formatter-specific options

        Returns:
            Formatted string
        """
        pass

    def supports_type(self, data: Any) -> bool:
        return True


class FormatterRegistry:
    """Registry for output formatters."""

    def __init__(self):
        self.formatters: Dict[str, OutputFormatter] = {}

    def register(self, name: str, formatter: OutputFormatter):
        self.formatters[name] = formatter

    def get(self, name: str) -> Optional[OutputFormatter]:
        return self.formatters.get(name)

    def format(self, data: Any, format_type: str = 'json', **kwargs) -> str:
        """Format data using specified formatter.

        Args:
            data: Data to format
            format_type: Formatter to use ('auto' for automatic selection)
            **kwargs: Formatter-specific options

        Returns:
            Formatted string

        Raises:
            ValueError: If formatter not found or data type not supported
        """
        if format_type == 'auto':
            format_type = self._auto_select_format(data)

        formatter = self.get(format_type)
        if not formatter:
            raise ValueError(f"Unknown format type: {format_type}")

        if not formatter.supports_type(data):
            raise ValueError(f"Formatter '{format_type}' does not support this data type")

        return formatter.format(data, **kwargs)

    def _auto_select_format(self, data: Any) -> str:
        """Table on a terminal, JSON when piped or redirected."""
        if sys.stdout.isatty() and isinstance(data, (list, dict)):
            return 'table'
        return 'json'

    def list_formats(self) -> List[str]:
        return list(self.formatters.keys())
