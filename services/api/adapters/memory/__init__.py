"""
In-memory spreadsheet backend.
Simple grid storage for local development and tests.
Cells are kept as the strings Sheets would display, so decoding behaves the
same as against a real spreadsheet.
"""
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from gspread.utils import a1_range_to_grid_range, a1_to_rowcol

from ..base import Grid, SheetNotFound


def to_cell(value: Any) -> str:
    """Render a written value the way Sheets shows it back with RAW input."""
    if value is None:
        return ""
    if value is True:
        return "TRUE"
    if value is False:
        return "FALSE"
    return str(value)


class MemoryBackend:
    """
    Dict of sheet name -> list of rows (row 0 = headers).
    A lock guards every call since the store runs them in worker threads.
    """

    def __init__(self, sheets: Optional[Dict[str, List[List[Any]]]] = None):
        self._lock = threading.Lock()
        self._sheets: Dict[str, List[List[str]]] = {}
        self._ids: Dict[str, int] = {}
        self.calls: List[str] = []
        for name, grid in (sheets or {}).items():
            self.add_sheet(name, grid)

    @classmethod
    def from_file(cls, path: str) -> "MemoryBackend":
        """Seed from a JSON file {"<sheet>": [[header...], [row...], ...]}."""
        with open(Path(path), "r", encoding="utf-8") as f:
            return cls(json.load(f))

    def add_sheet(self, name: str, grid: Optional[List[List[Any]]] = None) -> None:
        with self._lock:
            self._sheets[name] = [[to_cell(v) for v in row] for row in (grid or [])]
            self._ids.setdefault(name, len(self._ids) + 1)

    def snapshot(self, sheet: str) -> Grid:
        """Copy of the whole grid (tests / debugging)."""
        with self._lock:
            return [list(r) for r in self._grid(sheet)]

    def _grid(self, sheet: str) -> List[List[str]]:
        try:
            return self._sheets[sheet]
        except KeyError:
            raise SheetNotFound(sheet)

    def _set(self, grid: List[List[str]], a1_range: str, value: Any) -> None:
        row, col = a1_to_rowcol(a1_range)
        while len(grid) < row:
            grid.append([])
        cells = grid[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = to_cell(value)

    # ========== SheetBackend API ==========

    def get_range(self, sheet: str, range_spec: Optional[str] = None) -> Grid:
        with self._lock:
            self.calls.append(f"get_range:{sheet}:{range_spec}")
            grid = self._grid(sheet)
            if range_spec is None:
                return [list(r) for r in grid]
            gr = a1_range_to_grid_range(range_spec)
            r0 = gr.get("startRowIndex", 0)
            r1 = gr.get("endRowIndex", len(grid))
            c0 = gr.get("startColumnIndex", 0)
            c1 = gr.get("endColumnIndex")
            return [list(r[c0:c1]) for r in grid[r0:r1]]

    def append_row(self, sheet: str, values: List[Any]) -> None:
        with self._lock:
            self.calls.append(f"append_row:{sheet}")
            self._grid(sheet).append([to_cell(v) for v in values])

    def update_cell(self, sheet: str, a1_range: str, value: Any) -> None:
        with self._lock:
            self.calls.append(f"update_cell:{sheet}:{a1_range}")
            self._set(self._grid(sheet), a1_range, value)

    def batch_update_cells(self, sheet: str, updates: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.calls.append(f"batch_update_cells:{sheet}:{len(updates)}")
            grid = self._grid(sheet)
            for u in updates:
                self._set(grid, u["range"], u["value"])

    def get_sheet_id(self, sheet: str) -> int:
        with self._lock:
            self._grid(sheet)
            return self._ids[sheet]

    def delete_row(self, sheet: str, row_index: int) -> None:
        with self._lock:
            self.calls.append(f"delete_row:{sheet}:{row_index}")
            grid = self._grid(sheet)
            if 1 <= row_index <= len(grid):
                del grid[row_index - 1]

    def ping(self) -> None:
        return None
