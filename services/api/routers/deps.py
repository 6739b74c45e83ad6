"""
Shared FastAPI dependencies: the store and the auth collaborators live on
app.state (built in main.create_app).
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Header, Request

from core.auth import ApiKey, ApiKeyVerifier, JWTVerifier
from core.store import SheetStore


def get_store(request: Request) -> SheetStore:
    """Dependency to get the sheet store from app state."""
    return request.app.state.store


def get_api_keys(request: Request) -> ApiKeyVerifier:
    return request.app.state.api_keys


def get_jwt(request: Request) -> JWTVerifier:
    return request.app.state.jwt


async def require_api_key(
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
    verifier: ApiKeyVerifier = Depends(get_api_keys),
) -> ApiKey:
    return await verifier.verify(x_api_key)


async def sheet_access(
    sheet_name: str,
    key: ApiKey = Depends(require_api_key),
) -> ApiKey:
    ApiKeyVerifier.check_sheet_access(key, sheet_name)
    return key


def require_user(
    authorization: Optional[str] = Header(None),
    verifier: JWTVerifier = Depends(get_jwt),
) -> Dict[str, Any]:
    return verifier.verify(authorization)
