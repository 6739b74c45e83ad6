"""
Fire-and-forget notification to the downstream automation job after a sheet
changes. Best effort: failures are logged, never returned to the caller.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ACTION = "runAllUpdates"

# normalized sheet name -> action understood by the automation job ("" = nothing to refresh)
SHEET_ACTIONS = {
    "users": "updateUsers",
    "newstock-tickets": "updateTickets",
    "testhotels": "updateHotels",
    "teststock-rooms": "updateRooms",
    "event": "updateEvents",
    "packages": "updatePackages",
    "n-categories": "updateCategories",
    "package-tiers": "updatePackageTiers",
    "stock-circuittransfers": "",
    "stock-flights": "updateFlights",
    "stock-airporttransfers": "",
    "stock-loungepasses": "updateLoungePasses",
    "venues": "updateVenues",
    "itineraries": "updateItineraries",
    "fx-spread": "",
}


def normalize_sheet_name(sheet: str) -> str:
    return "".join((sheet or "").lower().split())


def action_for(sheet: str) -> str:
    return SHEET_ACTIONS.get(normalize_sheet_name(sheet), DEFAULT_ACTION)


class UpdateNotifier:
    def __init__(
        self,
        url: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._tasks: Set[asyncio.Task] = set()
        self.failures = 0

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def notify(self, sheet: str) -> None:
        """POST {"action": ...} for `sheet`. Logs and swallows transport errors."""
        action = action_for(sheet)
        try:
            resp = await self._get_client().post(self.url, json={"action": action})
            resp.raise_for_status()
            logger.info(f"{action or 'update'} triggered for sheet '{sheet}' ({resp.status_code})")
        except httpx.HTTPError as e:
            self.failures += 1
            logger.warning(f"Error triggering {action or 'update'} for sheet '{sheet}': {e}")

    def dispatch(self, sheet: str) -> Optional[asyncio.Task]:
        """Schedule notify() without waiting for it."""
        if not self.enabled:
            logger.debug(f"Notifier disabled; skipping update for '{sheet}'")
            return None
        task = asyncio.get_running_loop().create_task(self.notify(sheet))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error(f"Notifier task failed: {exc!r}")

    async def drain(self) -> None:
        """Wait for in-flight notifications (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
