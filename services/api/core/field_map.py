"""
Field mapping table: logical field names used by API clients -> literal
header text in the sheet.

Headers are free-form display strings ("Booker Email", "Payment 1 Status"),
so call sites go through this table instead of hard-coding header text.
Names with no mapping are taken as the literal header.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class FieldMappingTable:
    def __init__(self, mappings: Optional[Mapping[str, Mapping[str, str]]] = None) -> None:
        self._by_sheet: Dict[str, Dict[str, str]] = {
            sheet: dict(fields) for sheet, fields in (mappings or {}).items()
        }
        self._reverse: Dict[str, Dict[str, str]] = {
            sheet: {header: logical for logical, header in fields.items()}
            for sheet, fields in self._by_sheet.items()
        }

    @classmethod
    def from_file(cls, path: str) -> "FieldMappingTable":
        """Load {"<sheet>": {"<logical>": "<Header>"}} from a JSON file."""
        p = Path(path)
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Field map file {p} must contain a JSON object")
        logger.info(f"Loaded field map for {len(data)} sheet(s) from {p}")
        return cls(data)

    def for_sheet(self, sheet: str) -> Dict[str, str]:
        return dict(self._by_sheet.get(sheet, {}))

    def resolve(self, sheet: str, logical: str) -> str:
        """Literal header text for `logical`, or `logical` itself when unmapped."""
        return self._by_sheet.get(sheet, {}).get(logical, logical)

    def logical_for(self, sheet: str, header: str) -> Optional[str]:
        return self._reverse.get(sheet, {}).get(header)

    def __contains__(self, sheet: str) -> bool:
        return sheet in self._by_sheet
