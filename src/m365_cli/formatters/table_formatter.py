"""Table output formatter using rich."""

import json
from io import StringIO
from typing import Any
from rich.console import Console
from rich.table import Table
from rich.text import Text
from .base import OutputFormatter


class TableFormatter(OutputFormatter):
    """Format a response object as a two column property table.

    Lists (e.g. OData "value" collections) get one column per property.
    """

    def format(self, data: Any, **kwargs) -> str:
        """Format data as a table.

        Args:
            data: Single object or list of objects
            **kwargs: Options including:
                - title: Table title
                - max_width: Maximum column width (default: None)

        Returns:
            Rendered table with ANSI codes
        """
        if isinstance(data, dict) and isinstance(data.get('value'), list):
            data = data['value']

        if isinstance(data, list):
            table = self._list_table(data, **kwargs)
        elif isinstance(data, dict):
            table = self._object_table(data, **kwargs)
        else:
            return str(data)

        if table is None:
            return "No data to display"

        console = Console(file=StringIO(), force_terminal=True)
        console.print(table)
        return console.file.getvalue()

    def _object_table(self, data: dict, **kwargs) -> Table:
        table = Table(title=kwargs.get('title'), show_header=True, header_style="bold cyan")
        table.add_column("Property", style="bright_blue")
        table.add_column("Value", max_width=kwargs.get('max_width'), overflow='fold')
        for key, value in data.items():
            table.add_row(key, self._format_value(value))
        return table

    def _list_table(self, data: list, **kwargs):
        if not data:
            return None

        table = Table(title=kwargs.get('title'), show_header=True, header_style="bold cyan")
        if not isinstance(data[0], dict):
            table.add_column('Value', max_width=kwargs.get('max_width'))
            for item in data:
                table.add_row(self._format_value(item))
            return table

        keys = []
        for item in data:
            for key in item:
                if key not in keys:
                    keys.append(key)

        for key in keys:
            table.add_column(key, max_width=kwargs.get('max_width'), overflow='fold')
        for item in data:
            table.add_row(*[self._format_value(item.get(key)) for key in keys])
        return table

    def _format_value(self, value: Any) -> Text:
        if value is None:
            return Text("—", style="dim")
        elif isinstance(value, bool):
            return Text("true" if value else "false", style="green" if value else "red")
        elif isinstance(value, (list, dict)):
            if not value:
                return Text(json.dumps(value), style="dim")
            return Text(json.dumps(value, ensure_ascii=False))
        return Text(str(value))

    def supports_type(self, data: Any) -> bool:
        return isinstance(data, (list, dict, str))
