"""
Authentication collaborators.

- API keys live as rows in a sheet (`api_key`, `status`, `expiry_date`,
  `role`, `name`, `allowed_sheets`) and are read through the SheetStore.
- Bearer tokens are JWTs signed with the shared secret; only verification
  happens here, issuing tokens is someone else's job.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from cachetools import TTLCache
from jose import ExpiredSignatureError, JWTError, jwt

from core.errors import AccessDenied, AuthenticationError, NotFound
from core.filters import cell_text

logger = logging.getLogger(__name__)


@dataclass
class ApiKey:
    key: str
    role: str = ""
    name: str = ""
    allowed_sheets: List[str] = field(default_factory=list)

    def can_access(self, sheet: str) -> bool:
        if not self.allowed_sheets or "all" in self.allowed_sheets:
            return True
        return sheet in self.allowed_sheets


def _parse_date(value: Any) -> Optional[datetime]:
    s = cell_text(value).strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class ApiKeyVerifier:
    def __init__(
        self,
        store,
        sheet: str = "api_keys",
        ttl: float = 300.0,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.sheet = sheet
        self._cache: TTLCache = TTLCache(maxsize=512, ttl=ttl, timer=timer)

    async def verify(self, api_key: Optional[str], required_role: Optional[str] = None) -> ApiKey:
        if not api_key:
            raise AuthenticationError("API key is required")

        cached = self._cache.get(api_key)
        if cached is None:
            cached = await self._lookup(api_key)
            if cached is None:
                raise AuthenticationError("Invalid or expired API key")
            self._cache[api_key] = cached

        if required_role and cached.role != required_role:
            raise AuthenticationError("Invalid or expired API key")
        return cached

    async def _lookup(self, api_key: str) -> Optional[ApiKey]:
        try:
            rows = await self.store.records(self.sheet)
        except NotFound:
            logger.warning(f"API key sheet '{self.sheet}' is missing or empty")
            return None

        row = next((r for r in rows if cell_text(r.get("api_key", "")) == api_key), None)
        if row is None:
            return None
        if cell_text(row.get("status", "")) != "active":
            return None
        expiry = _parse_date(row.get("expiry_date"))
        if expiry is not None and expiry < datetime.now(timezone.utc):
            return None

        allowed = cell_text(row.get("allowed_sheets", ""))
        return ApiKey(
            key=api_key,
            role=cell_text(row.get("role", "")),
            name=cell_text(row.get("name", "")),
            allowed_sheets=[s.strip() for s in allowed.split(",") if s.strip()],
        )

    @staticmethod
    def check_sheet_access(key: ApiKey, sheet: str) -> None:
        if not key.can_access(sheet):
            raise AccessDenied("Your API key does not have permission to access this sheet", sheet=sheet)


class JWTVerifier:
    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, authorization: Optional[str]) -> Dict[str, Any]:
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("Authentication required")
        if not self.secret:
            logger.error("JWT_SECRET is not configured; rejecting bearer token")
            raise AuthenticationError("Token verification is not configured")
        token = authorization.split(" ", 1)[1].strip()
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except JWTError:
            raise AuthenticationError("Invalid token")
