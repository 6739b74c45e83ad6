"""
Sheet row endpoints: read, append, update cells, delete.
"""
from __future__ import annotations

from typing import Any, Dict, List, Union
from logging import getLogger

from fastapi import APIRouter, Body, Depends, Request, status

from core.errors import BadRequest
from core.store import SheetStore
from routers.deps import get_store, sheet_access
from schemas.sheet import BulkUpdate, CellUpdate, WriteAck

logger = getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/sheets",
    tags=["sheets"],
    dependencies=[Depends(sheet_access)],
)


@router.get("/{sheet_name}/{id_column}/{id_value}", response_model=Dict[str, Any])
async def get_row(
    sheet_name: str,
    id_column: str,
    id_value: str,
    store: SheetStore = Depends(get_store),
):
    """Single record whose `id_column` equals `id_value` (first match)."""
    return await store.read_one(sheet_name, id_column, id_value)


@router.get("/{sheet_name}", response_model=List[Dict[str, Any]])
async def list_rows(
    sheet_name: str,
    request: Request,
    store: SheetStore = Depends(get_store),
):
    """All records of a sheet, filtered by known query parameters (eventId, packageId, ...)."""
    return await store.read_all(sheet_name, dict(request.query_params))


@router.post("/{sheet_name}", response_model=WriteAck, status_code=status.HTTP_200_OK)
async def create_row(
    sheet_name: str,
    payload: Union[List[Any], Dict[str, Any]] = Body(...),
    store: SheetStore = Depends(get_store),
):
    """
    Append one row.

    Body is either a positional array (one value per column, extra values
    ignored) or an object keyed by column name (unknown columns are dropped).
    """
    if not payload:
        raise BadRequest("Request body must not be empty", sheet=sheet_name)
    logger.info(f"Writing to sheet: {sheet_name}")
    return await store.create(sheet_name, payload)


@router.put("/{sheet_name}/{id_column}/{id_value}/bulk", response_model=WriteAck)
async def bulk_update_cells(
    sheet_name: str,
    id_column: str,
    id_value: str,
    updates: BulkUpdate,
    store: SheetStore = Depends(get_store),
):
    """Update several cells of one row; nothing is written if any column is unknown."""
    return await store.bulk_update(
        sheet_name,
        id_column,
        id_value,
        [u.model_dump() for u in updates.root],
    )


@router.put("/{sheet_name}/{id_column}/{id_value}", response_model=WriteAck)
async def update_cell(
    sheet_name: str,
    id_column: str,
    id_value: str,
    update: CellUpdate,
    store: SheetStore = Depends(get_store),
):
    """Update a single cell. 409 while the same cell of the same row is being written."""
    return await store.update_cell(sheet_name, id_column, id_value, update.column, update.value)


@router.delete("/{sheet_name}/{id_column}/{id_value}", response_model=WriteAck)
async def delete_row(
    sheet_name: str,
    id_column: str,
    id_value: str,
    store: SheetStore = Depends(get_store),
):
    """Remove the first row whose `id_column` equals `id_value`."""
    return await store.delete(sheet_name, id_column, id_value)
