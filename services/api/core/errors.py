"""
Error taxonomy for the sheet store.

Every error carries the HTTP status the route layer should answer with and a
short machine-readable name. Routers never build these responses by hand; the
exception handler registered in main.py renders them.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class SheetStoreError(Exception):
    status_code: int = 500
    error: str = "InternalServerError"

    def __init__(self, message: str, *, sheet: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.sheet = sheet

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class BadRequest(SheetStoreError):
    status_code = 400
    error = "BadRequest"


class UnknownColumn(BadRequest):
    """A column name that does not exist in the sheet's header row."""

    def __init__(self, column: str, headers: List[str], *, sheet: Optional[str] = None) -> None:
        available = ", ".join(h for h in headers if h)
        super().__init__(
            f"Column '{column}' not found in sheet. Available columns: {available}",
            sheet=sheet,
        )
        self.column = column
        self.available_headers = [h for h in headers if h]

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["available_headers"] = self.available_headers
        return out


class NotFound(SheetStoreError):
    status_code = 404
    error = "NotFound"


class Conflict(SheetStoreError):
    status_code = 409
    error = "Conflict"


class ServiceUnavailable(SheetStoreError):
    status_code = 503
    error = "ServiceUnavailable"


class InternalError(SheetStoreError):
    status_code = 500
    error = "InternalServerError"


class AuthenticationError(SheetStoreError):
    status_code = 401
    error = "AuthenticationError"

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["requiresReauth"] = True
        return out


class AccessDenied(SheetStoreError):
    status_code = 403
    error = "AccessDenied"
