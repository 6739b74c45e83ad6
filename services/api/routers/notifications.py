"""
Per-user "seen" markers for booking notifications.
Rows of the `notifications` sheet: booking_id, seen (timestamp), user_id.
"""
from __future__ import annotations

import time
from logging import getLogger
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from core.auth import ApiKey, ApiKeyVerifier
from core.errors import AuthenticationError, NotFound
from core.filters import cell_text
from core.store import SheetStore
from routers.deps import get_store, require_api_key, require_user
from schemas.sheet import SeenNotifications

logger = getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])

NOTIFICATIONS_SHEET = "notifications"


def _user_id(claims: Dict[str, Any]) -> str:
    user_id = cell_text(claims.get("user_id") or "").strip()
    if not user_id:
        raise AuthenticationError("User ID not found in token")
    return user_id


async def _seen_for_user(store: SheetStore, user_id: str) -> List[Dict[str, Any]]:
    try:
        rows = await store.read_all(NOTIFICATIONS_SHEET)
    except NotFound:
        return []
    return [r for r in rows if cell_text(r.get("user_id", "")) == user_id]


@router.get("/seen", response_model=List[str])
async def get_seen(
    key: ApiKey = Depends(require_api_key),
    claims: Dict[str, Any] = Depends(require_user),
    store: SheetStore = Depends(get_store),
):
    """Booking ids the current user has already seen."""
    ApiKeyVerifier.check_sheet_access(key, NOTIFICATIONS_SHEET)
    rows = await _seen_for_user(store, _user_id(claims))
    return [cell_text(r.get("booking_id", "")) for r in rows]


@router.post("/seen")
async def mark_seen(
    body: SeenNotifications,
    key: ApiKey = Depends(require_api_key),
    claims: Dict[str, Any] = Depends(require_user),
    store: SheetStore = Depends(get_store),
):
    """Record booking ids as seen; ids already recorded for this user are skipped."""
    ApiKeyVerifier.check_sheet_access(key, NOTIFICATIONS_SHEET)
    user_id = _user_id(claims)

    existing = {cell_text(r.get("booking_id", "")) for r in await _seen_for_user(store, user_id)}
    new_ids = [b for b in dict.fromkeys(body.bookingIds) if b not in existing]

    timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    for booking_id in new_ids:
        await store.create(
            NOTIFICATIONS_SHEET,
            {"booking_id": booking_id, "seen": timestamp, "user_id": user_id},
        )

    logger.info(f"{len(new_ids)} notification(s) marked seen for user {user_id}")
    return {
        "message": "Notifications marked as seen",
        "count": len(new_ids),
        "total": len(body.bookingIds),
        "userId": user_id,
    }
