"""
Row lookup by (id column, id value).
"""
from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple

# Header row is physical row 1, so data index i (0-based, after the header) is row i + 2.
HEADER_ROWS = 1


def find_in_grid(
    grid: Sequence[Sequence[Any]], id_column: str, id_value: str
) -> Optional[Tuple[int, int]]:
    """
    (1-based physical row number, 0-based id column index) of the first data
    row whose cell under `id_column` equals `id_value`, or None.

    Header match is exact; cell match is exact on the grid's string form.
    """
    if not grid:
        return None
    headers = list(grid[0])
    try:
        col = headers.index(id_column)
    except ValueError:
        return None

    for i, row in enumerate(grid[HEADER_ROWS:]):
        cell = row[col] if col < len(row) else ""
        if cell == id_value:
            return i + HEADER_ROWS + 1, col
    return None


def locate_in_grid(grid: Sequence[Sequence[Any]], id_column: str, id_value: str) -> Optional[int]:
    found = find_in_grid(grid, id_column, id_value)
    return found[0] if found else None


class RowLocator:
    """Scans the uncached grid so row numbers are never taken from stale data."""

    def __init__(self, gateway) -> None:
        self._gateway = gateway

    async def find(self, sheet: str, id_column: str, id_value: str) -> Optional[Tuple[int, int]]:
        grid = await self._gateway.fetch_grid(sheet)
        return find_in_grid(grid, id_column, id_value)

    async def locate(self, sheet: str, id_column: str, id_value: str) -> Optional[int]:
        found = await self.find(sheet, id_column, id_value)
        return found[0] if found else None
