"""
Async access to a blocking SheetBackend.

Each backend call runs in a worker thread, so every call is a suspension
point for the event loop. Backend failures are translated into the store's
error taxonomy with the sheet name attached.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List

from adapters.base import BackendError, Grid, SheetBackend, SheetNotFound
from core.cache import SheetCache
from core.errors import NotFound, ServiceUnavailable

logger = logging.getLogger(__name__)

HEADER_RANGE = "1:1"


class BackendGateway:
    def __init__(self, backend: SheetBackend, cache: SheetCache, timeout: float = 0.0) -> None:
        self.backend = backend
        self.cache = cache
        self.timeout = timeout
        self.calls = 0

    async def call(self, sheet: str, fn: Callable[..., Any], *args: Any) -> Any:
        self.calls += 1
        try:
            coro = asyncio.to_thread(fn, sheet, *args)
            if self.timeout and self.timeout > 0:
                return await asyncio.wait_for(coro, timeout=self.timeout)
            return await coro
        except SheetNotFound as e:
            raise NotFound(f"Sheet '{sheet}' not found", sheet=sheet) from e
        except BackendError as e:
            logger.error(f"Backing store error on sheet '{sheet}': {e}")
            raise ServiceUnavailable(
                f"Spreadsheet service unavailable for sheet '{sheet}'", sheet=sheet
            ) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Backing store timed out on sheet '{sheet}' after {self.timeout}s")
            raise ServiceUnavailable(
                f"Spreadsheet service timed out for sheet '{sheet}'", sheet=sheet
            ) from e

    async def fetch_grid(self, sheet: str) -> Grid:
        """Full raw grid, never cached."""
        return await self.call(sheet, self.backend.get_range, None)

    async def fetch_range(self, sheet: str, range_spec: str) -> Grid:
        return await self.call(sheet, self.backend.get_range, range_spec)

    async def headers(self, sheet: str) -> List[str]:
        """Header row, served from the cache while fresh."""
        cached = self.cache.get_headers(sheet)
        if cached is not None:
            return list(cached)
        generation = self.cache.generation(sheet)
        rows = await self.fetch_range(sheet, HEADER_RANGE)
        headers: List[str] = list(rows[0]) if rows else []
        if headers:
            self.cache.put_headers(sheet, headers, generation=generation)
        return headers

    async def read_cell(self, sheet: str, a1_range: str) -> str:
        rows = await self.fetch_range(sheet, a1_range)
        if not rows or not rows[0]:
            return ""
        return rows[0][0]
