"""
Backing store interface for the sheet store.
Defines the contract that every spreadsheet backend must implement.
"""

from typing import Protocol, List, Dict, Any


Grid = List[List[str]]


class BackendError(Exception):
    """Transport / remote API failure talking to the backing store."""


class SheetNotFound(BackendError):
    """The named worksheet does not exist."""

    def __init__(self, sheet: str) -> None:
        super().__init__(f"Sheet '{sheet}' not found")
        self.sheet = sheet


class SheetBackend(Protocol):
    """
    Protocol defining the interface for all spreadsheet backends.

    Calls are blocking; the store runs them in a worker thread.
    Cells come back as the sheet displays them (strings); rows may be
    shorter than the header row when trailing cells are empty.
    """

    def get_range(self, sheet: str, range_spec: str | None = None) -> Grid:
        """
        Return the cells of `range_spec` (A1 notation without the sheet name,
        e.g. "1:1" or "A1:ZZ1"). None means the whole sheet.
        """
        ...

    def append_row(self, sheet: str, values: List[Any]) -> None:
        """Append one row after the last non-empty row."""
        ...

    def update_cell(self, sheet: str, a1_range: str, value: Any) -> None:
        """Write one cell, e.g. a1_range="C2"."""
        ...

    def batch_update_cells(self, sheet: str, updates: List[Dict[str, Any]]) -> None:
        """Write several cells in one call: [{"range": "C2", "value": 4}, ...]."""
        ...

    def delete_row(self, sheet: str, row_index: int) -> None:
        """Remove physical row `row_index` (1-based); later rows shift up."""
        ...

    def get_sheet_id(self, sheet: str) -> int:
        """Internal numeric id of the worksheet (needed for structural edits)."""
        ...
