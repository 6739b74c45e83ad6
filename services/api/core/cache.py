"""
Expiring read cache for decoded sheet contents and header rows.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from cachetools import TTLCache

from adapters.base import Grid
from core.codec import Record

_DATA = "data"
_HEADERS = "headers"


class SheetCache:
    """
    Per-sheet cache of decoded records and raw header rows.

    Both namespaces share one TTLCache so an entry older than `ttl` seconds is
    never returned. `timer` is injectable so tests can move time by hand.

    Each sheet has a generation number that `invalidate` bumps. A reader takes
    the generation before fetching and passes it to `put`; the put is dropped
    if a write invalidated the sheet in between, so a slow read can never
    re-cache pre-write contents.
    """

    def __init__(
        self,
        ttl: float = 120.0,
        maxsize: int = 256,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.maxsize = maxsize
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self.hits = 0
        self.misses = 0

    def _get(self, key: tuple) -> Optional[Any]:
        value = self._entries.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def generation(self, sheet: str) -> Tuple[int, int]:
        return self._epoch, self._generations.get(sheet, 0)

    def _is_current(self, sheet: str, generation: Optional[Tuple[int, int]]) -> bool:
        return generation is None or generation == self.generation(sheet)

    def lookup(self, sheet: str) -> Optional[Tuple[List[Record], Optional[Grid]]]:
        """(records, raw grid) cached together for `sheet`, or None."""
        return self._get((_DATA, sheet))

    def get(self, sheet: str) -> Optional[List[Record]]:
        entry = self.lookup(sheet)
        return entry[0] if entry is not None else None

    def put(
        self,
        sheet: str,
        records: List[Record],
        grid: Optional[Grid] = None,
        generation: Optional[Tuple[int, int]] = None,
    ) -> bool:
        if not self._is_current(sheet, generation):
            return False
        self._entries[(_DATA, sheet)] = (records, grid)
        return True

    def get_headers(self, sheet: str) -> Optional[List[str]]:
        return self._get((_HEADERS, sheet))

    def put_headers(
        self, sheet: str, headers: List[str], generation: Optional[Tuple[int, int]] = None
    ) -> bool:
        if not self._is_current(sheet, generation):
            return False
        self._entries[(_HEADERS, sheet)] = list(headers)
        return True

    def invalidate(self, sheet: str) -> None:
        self._generations[sheet] = self._generations.get(sheet, 0) + 1
        self._entries.pop((_DATA, sheet), None)
        self._entries.pop((_HEADERS, sheet), None)

    def clear(self) -> None:
        self._epoch += 1
        self._generations.clear()
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
