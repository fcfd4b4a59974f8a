"""Command groups for the Microsoft 365 CLI."""

from .graph import graph_group
from .spo import spo_group

__all__ = [
    'graph_group',
    'spo_group',
]
