"""Output formatters for displaying response payloads."""

from .base import OutputFormatter, FormatterRegistry
from .json_formatter import JSONFormatter
from .table_formatter import TableFormatter
from .yaml_formatter import YAMLFormatter

# Register default formatters
registry = FormatterRegistry()
registry.register('json', JSONFormatter())
registry.register('table', TableFormatter())
registry.register('yaml', YAMLFormatter())


def format_output(data, format_type='json', **kwargs):
    """Format data for output.

    Args:
        data: Data to format
        format_type: Output format ('json', 'table', 'yaml', 'auto')
        **kwargs: Additional formatter options

    Returns:
        Formatted string
    """
    return registry.format(data, format_type, **kwargs)

__all__ = [
    'OutputFormatter',
    'FormatterRegistry',
    'JSONFormatter',
    'TableFormatter',
    'YAMLFormatter',
    'format_output',
    'registry',
]
