"""
SheetStore: the data access layer routers talk to.

One instance is built per application (see main.create_app) and shared through
app.state; it owns the read cache, the pending-write markers and the notifier.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from adapters.base import Grid, SheetBackend
from core import codec
from core.cache import SheetCache
from core.errors import NotFound
from core.field_map import FieldMappingTable
from core.filters import apply_filters
from core.gateway import BackendGateway
from core.locator import RowLocator, find_in_grid
from core.notifier import UpdateNotifier
from core.writer import WriteCoordinator

logger = logging.getLogger(__name__)


class SheetStore:
    def __init__(
        self,
        backend: SheetBackend,
        *,
        field_map: Optional[FieldMappingTable] = None,
        notifier: Optional[UpdateNotifier] = None,
        cache_ttl: float = 120.0,
        cache_maxsize: int = 256,
        timer: Callable[[], float] = time.monotonic,
        timeout: float = 0.0,
        verify_row_before_write: bool = True,
    ) -> None:
        self.backend = backend
        self.field_map = field_map or FieldMappingTable()
        self.notifier = notifier or UpdateNotifier()
        self.cache = SheetCache(ttl=cache_ttl, maxsize=cache_maxsize, timer=timer)
        self.gateway = BackendGateway(backend, self.cache, timeout=timeout)
        self.locator = RowLocator(self.gateway)
        self.writer = WriteCoordinator(
            self.gateway,
            self.cache,
            self.field_map,
            self.locator,
            self.notifier,
            verify_row_before_write=verify_row_before_write,
        )

    # ========== Reads ==========

    async def _load(self, sheet: str) -> Tuple[List[codec.Record], Grid]:
        """(decoded records, raw grid) of `sheet`, read through the cache."""
        entry = self.cache.lookup(sheet)
        if entry is not None and entry[1] is not None:
            return entry

        generation = self.cache.generation(sheet)
        grid = await self.gateway.fetch_grid(sheet)
        if not grid:
            raise NotFound(f"No data found in sheet: {sheet}", sheet=sheet)
        data = codec.decode(grid)
        if not self.cache.put(sheet, data, grid, generation=generation):
            logger.debug(f"Sheet '{sheet}' changed during fetch; result not cached")
        logger.debug(f"Sheet '{sheet}' fetched: {len(data)} row(s)")
        return data, grid

    async def records(self, sheet: str) -> List[codec.Record]:
        """Decoded records of `sheet`, read through the cache."""
        data, _ = await self._load(sheet)
        return data

    async def read_all(self, sheet: str, filters: Optional[Mapping[str, str]] = None) -> List[Dict[str, Any]]:
        return apply_filters(await self.records(sheet), filters or {})

    def _id_header(self, sheet: str, headers: Sequence[str], id_column: str) -> Optional[str]:
        """Header text for `id_column`: literal, mapped, or same normalized key."""
        if id_column in headers:
            return id_column
        mapped = self.field_map.resolve(sheet, id_column)
        if mapped in headers:
            return mapped
        wanted = codec.normalize_header(id_column)
        return next((h for h in headers if codec.normalize_header(h) == wanted), None)

    async def read_one(self, sheet: str, id_column: str, id_value: str) -> Dict[str, Any]:
        """
        First record whose `id_column` cell holds exactly `id_value`.

        `id_column` may be the header text, a mapped field name or the
        normalized key ("Booking ID" / "booking_id"). Cells are compared on
        their raw text, the same way writes locate rows, so "007" stays "007".
        """
        data, grid = await self._load(sheet)
        header = self._id_header(sheet, list(grid[0]), id_column)
        found = find_in_grid(grid, header, id_value) if header is not None else None
        if not found:
            raise NotFound(f"No item found with {id_column}: {id_value}", sheet=sheet)
        row, _ = found
        return dict(data[row - 2])

    async def locate(self, sheet: str, id_column: str, id_value: str) -> Optional[int]:
        return await self.locator.locate(sheet, id_column, id_value)

    async def headers(self, sheet: str) -> List[str]:
        return await self.gateway.headers(sheet)

    # ========== Writes ==========

    async def create(self, sheet: str, payload: Union[List[Any], Dict[str, Any]]) -> Dict[str, Any]:
        return await self.writer.create(sheet, payload)

    async def update_cell(
        self, sheet: str, id_column: str, id_value: str, column: str, value: Any
    ) -> Dict[str, Any]:
        return await self.writer.update_cell(sheet, id_column, id_value, column, value)

    async def bulk_update(
        self, sheet: str, id_column: str, id_value: str, updates: Sequence[Dict[str, Any]]
    ) -> Dict[str, Any]:
        return await self.writer.bulk_update(sheet, id_column, id_value, updates)

    async def delete(self, sheet: str, id_column: str, id_value: str) -> Dict[str, Any]:
        return await self.writer.delete(sheet, id_column, id_value)

    # ========== Lifecycle ==========

    def stats(self) -> Dict[str, Any]:
        return {
            "cache_size": len(self.cache),
            "cache_hits": self.cache.hits,
            "cache_misses": self.cache.misses,
            "backend_calls": self.gateway.calls,
            "pending_writes": self.writer.pending_count(),
            "notifier_failures": self.notifier.failures,
        }

    async def aclose(self) -> None:
        await self.notifier.aclose()
