"""YAML output formatter."""

import yaml
from typing import Any
from .base import OutputFormatter


class YAMLFormatter(OutputFormatter):
    """Format output as YAML."""

    def format(self, data: Any, **kwargs) -> str:
        return yaml.safe_dump(
            data,
            default_flow_style=False,
            indent=kwargs.get('indent', 2),
            width=kwargs.get('width', 80),
            sort_keys=False,
            allow_unicode=True
        )
