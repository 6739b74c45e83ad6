"""
Row codec: raw sheet grid <-> keyed records.

The sheet has no schema beyond its header row, so records are keyed by the
normalized header text and values are coerced from their string form.
"""
from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Sequence, Union

Cell = Union[bool, int, float, str]
Record = Dict[str, Cell]

_WS_RE = re.compile(r"\s+")
_INT_RE = re.compile(r"[+-]?\d+", re.ASCII)
# plain decimal / exponent notation only: no "1_000", no non-ASCII digits
_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)


def normalize_header(text: Any) -> str:
    """'  Login   Count ' -> 'login_count'"""
    return _WS_RE.sub("_", str(text or "").strip().lower())


def _parse_number(s: str) -> Optional[Union[int, float]]:
    if _INT_RE.fullmatch(s):
        return int(s)
    if not _NUMBER_RE.fullmatch(s):
        return None
    n = float(s)
    # "1e400" overflows to inf; stays a string
    if not math.isfinite(n):
        return None
    return n


def decode_cell(value: Any) -> Cell:
    if value is None:
        return ""
    s = str(value).strip()
    if s == "":
        return ""
    low = s.lower()
    if low == "true":
        return True
    if low == "false":
        return False
    num = _parse_number(s)
    if num is not None:
        return num
    return s


def decode_row(headers: Sequence[Any], row: Sequence[Any]) -> Record:
    out: Record = {}
    # left to right: when two headers normalize to the same key the rightmost wins
    for i, header in enumerate(headers):
        key = normalize_header(header)
        if not key:
            continue
        out[key] = decode_cell(row[i] if i < len(row) else None)
    return out


def decode(grid: Sequence[Sequence[Any]]) -> List[Record]:
    """Decode a full grid (row 0 = headers) into records, one per data row."""
    if not grid:
        return []
    headers = grid[0]
    return [decode_row(headers, row) for row in grid[1:]]


def encode_value(value: Any) -> Any:
    """'' is written as an explicit empty marker (None) rather than left out."""
    return None if value == "" else value


def encode(field_map, sheet: str, headers: Sequence[str], record: Dict[str, Any]) -> List[Any]:
    """
    Build one row aligned to the live header order.

    For every header, the record field whose mapped column equals that header
    supplies the value. Columns nobody maps to stay "" (omitted).
    """
    by_header: Dict[str, Any] = {}
    for field, value in record.items():
        by_header[field_map.resolve(sheet, field)] = value

    row: List[Any] = []
    for header in headers:
        if header in by_header:
            row.append(encode_value(by_header[header]))
        else:
            row.append("")
    return row


def column_letter(index: int) -> str:
    """0 -> 'A', 25 -> 'Z', 26 -> 'AA'"""
    if index < 0:
        raise ValueError(f"column index must be >= 0, got {index}")
    letters = ""
    while index >= 0:
        letters = chr(ord("A") + index % 26) + letters
        index = index // 26 - 1
    return letters


def a1(row_number: int, col_index: int) -> str:
    """1-based row number + 0-based column index -> 'C2'"""
    return f"{column_letter(col_index)}{row_number}"
