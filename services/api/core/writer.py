"""
Write coordinator: every mutation of a sheet goes through here.

- (sheet, id value, column) keys already being written are refused with Conflict
- columns are resolved through the field mapping table, then the live header row
- rows are located on the uncached grid
- after a successful write the sheet's cache entries are dropped and the
  update notifier is dispatched
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence, Set, Tuple, Union

from core import codec
from core.cache import SheetCache
from core.errors import BadRequest, Conflict, NotFound, UnknownColumn
from core.field_map import FieldMappingTable
from core.gateway import BackendGateway
from core.locator import RowLocator
from core.notifier import UpdateNotifier

logger = logging.getLogger(__name__)

WriteKey = Tuple[str, str, str]


class PendingWrites:
    """In-flight (sheet, id value, column) keys. Only touched on the event loop."""

    def __init__(self) -> None:
        self._keys: Set[WriteKey] = set()

    def acquire(self, keys: Iterable[WriteKey]) -> List[WriteKey]:
        """Mark every key, or none of them if any is already in flight."""
        wanted = list(dict.fromkeys(keys))
        busy = [k for k in wanted if k in self._keys]
        if busy:
            sheet, id_value, column = busy[0]
            raise Conflict(
                f"Update already in progress for {sheet} / {id_value} / {column}",
                sheet=sheet,
            )
        self._keys.update(wanted)
        return wanted

    def release(self, keys: Iterable[WriteKey]) -> None:
        for k in keys:
            self._keys.discard(k)

    def __contains__(self, key: WriteKey) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class WriteCoordinator:
    def __init__(
        self,
        gateway: BackendGateway,
        cache: SheetCache,
        field_map: FieldMappingTable,
        locator: RowLocator,
        notifier: UpdateNotifier,
        verify_row_before_write: bool = True,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.field_map = field_map
        self.locator = locator
        self.notifier = notifier
        self.verify_row_before_write = verify_row_before_write
        self.pending = PendingWrites()

    # ---------- helpers ----------

    def _column_index(self, sheet: str, headers: Sequence[str], column: str) -> int:
        literal = self.field_map.resolve(sheet, column)
        try:
            return list(headers).index(literal)
        except ValueError:
            raise UnknownColumn(literal, list(headers), sheet=sheet)

    async def _locate(self, sheet: str, id_column: str, id_value: str) -> Tuple[int, int]:
        found = await self.locator.find(sheet, self.field_map.resolve(sheet, id_column), id_value)
        if not found:
            raise NotFound(f"Item not found: {id_column} = {id_value} in sheet '{sheet}'", sheet=sheet)
        return found

    async def _verify_row(self, sheet: str, row: int, id_col: int, id_value: str) -> None:
        """The located row must still hold `id_value` right before we write to it."""
        if not self.verify_row_before_write:
            return
        current = await self.gateway.read_cell(sheet, codec.a1(row, id_col))
        if current != id_value:
            raise Conflict(
                f"Row {row} in sheet '{sheet}' changed while updating {id_value}; retry the request",
                sheet=sheet,
            )

    def _after_write(self, sheet: str) -> None:
        self.cache.invalidate(sheet)
        self.notifier.dispatch(sheet)

    # ---------- operations ----------

    async def update_cell(
        self, sheet: str, id_column: str, id_value: str, column: str, value: Any
    ) -> Dict[str, Any]:
        keys = self.pending.acquire([(sheet, id_value, column)])
        try:
            headers = await self.gateway.headers(sheet)
            literal = self.field_map.resolve(sheet, column)
            row, id_col = await self._locate(sheet, id_column, id_value)
            col = self._column_index(sheet, headers, column)

            cell = codec.a1(row, col)
            await self._verify_row(sheet, row, id_col, id_value)
            await self.gateway.call(
                sheet, self.gateway.backend.update_cell, cell, codec.encode_value(value)
            )
            logger.info(f"Cell {cell} ({literal}) updated in sheet '{sheet}'")

            self._after_write(sheet)
            return {"message": "Cell updated successfully", "row": row, "range": cell}
        finally:
            self.pending.release(keys)

    async def bulk_update(
        self, sheet: str, id_column: str, id_value: str, updates: Sequence[Dict[str, Any]]
    ) -> Dict[str, Any]:
        if not updates:
            raise BadRequest("Request body must be a non-empty array of updates", sheet=sheet)

        keys = self.pending.acquire([(sheet, id_value, u["column"]) for u in updates])
        try:
            headers = await self.gateway.headers(sheet)
            row, id_col = await self._locate(sheet, id_column, id_value)

            # every column must resolve before anything is written
            batch = []
            for u in updates:
                col = self._column_index(sheet, headers, u["column"])
                batch.append({"range": codec.a1(row, col), "value": codec.encode_value(u.get("value"))})

            await self._verify_row(sheet, row, id_col, id_value)
            await self.gateway.call(sheet, self.gateway.backend.batch_update_cells, batch)
            logger.info(f"Bulk update of {len(batch)} cell(s) on row {row} in sheet '{sheet}'")

            self._after_write(sheet)
            return {
                "message": "Bulk update completed successfully",
                "row": row,
                "ranges": [b["range"] for b in batch],
            }
        finally:
            self.pending.release(keys)

    def _row_from_payload(
        self, sheet: str, headers: List[str], payload: Union[List[Any], Dict[str, Any]]
    ) -> List[Any]:
        if isinstance(payload, list):
            row = [codec.encode_value(v) for v in payload[: len(headers)]]
            return row + [""] * (len(headers) - len(row))

        kept: Dict[str, Any] = {}
        for field, value in payload.items():
            if self.field_map.resolve(sheet, field) in headers:
                kept[field] = value
            else:
                logger.info(f"Column {field} not found in headers of sheet '{sheet}'; dropped")
        return codec.encode(self.field_map, sheet, headers, kept)

    async def create(self, sheet: str, payload: Union[List[Any], Dict[str, Any]]) -> Dict[str, Any]:
        headers = await self.gateway.headers(sheet)
        if not headers:
            raise BadRequest(f"No headers found in sheet '{sheet}'", sheet=sheet)

        row = self._row_from_payload(sheet, headers, payload)
        await self.gateway.call(sheet, self.gateway.backend.append_row, row)
        logger.info(f"Data written to sheet '{sheet}'")

        self._after_write(sheet)
        return {"message": "Data successfully written to the sheet"}

    async def delete(self, sheet: str, id_column: str, id_value: str) -> Dict[str, Any]:
        row, id_col = await self._locate(sheet, id_column, id_value)
        await self._verify_row(sheet, row, id_col, id_value)
        await self.gateway.call(sheet, self.gateway.backend.delete_row, row)
        logger.info(f"Row {row} ({id_column} = {id_value}) deleted from sheet '{sheet}'")

        self._after_write(sheet)
        return {"message": "Item deleted successfully", "row": row}

    def is_pending(self, sheet: str, id_value: str, column: str) -> bool:
        return (sheet, id_value, column) in self.pending

    def pending_count(self) -> int:
        return len(self.pending)
