"""Widget library for the Textual UI."""

from __future__ import annotations

from .selection_table import SelectionTable
from .status_bar import StatusBar

__all__ = ["SelectionTable", "StatusBar"]
