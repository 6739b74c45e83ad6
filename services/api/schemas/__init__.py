"""
Pydantic schemas for API request/response validation.
"""
from .sheet import BulkUpdate, CellUpdate, CellValue, SeenNotifications, WriteAck

__all__ = [
    "BulkUpdate",
    "CellUpdate",
    "CellValue",
    "SeenNotifications",
    "WriteAck",
]
