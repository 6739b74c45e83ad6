"""
Pydantic schemas for sheet row operations.
"""
from typing import List, Optional, Union

from pydantic import BaseModel, Field, RootModel, StrictBool, field_validator

# StrictBool keeps "true"/"1" strings from turning into booleans
CellValue = Optional[Union[StrictBool, int, float, str]]


class CellUpdate(BaseModel):
    """One cell write: logical column name + new value ("" or null clears the cell)."""
    column: str = Field(..., min_length=1, description="Logical column name or literal header text")
    value: CellValue = Field(None, description="String, number, boolean or null")

    @field_validator("column")
    @classmethod
    def strip_column(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Column name is required and must be a non-empty string")
        return v


class BulkUpdate(RootModel[List[CellUpdate]]):
    """Array of cell writes applied to the same row."""

    @field_validator("root")
    @classmethod
    def non_empty(cls, v: List[CellUpdate]) -> List[CellUpdate]:
        if not v:
            raise ValueError("Request body must be a non-empty array of updates")
        return v


class WriteAck(BaseModel):
    """Acknowledgement for a successful write."""
    message: str
    row: Optional[int] = None
    range: Optional[str] = None
    ranges: Optional[List[str]] = None


class SeenNotifications(BaseModel):
    """Booking ids the current user has seen."""
    bookingIds: List[str] = Field(..., description="Booking ids to mark as seen")
