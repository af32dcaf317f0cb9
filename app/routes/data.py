"""
Data API Routes
List, upsert and delete JSON records kept in table storage. Records live in
partition "main" keyed by their ``id``; the record itself is stored as JSON in
the ``data`` column.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from app.dependencies import get_table_storage_client
from app.infrastructure.observability.logging import get_logger
from app.models.api.proxy_response import ErrorResponse, OkResponse
from app.services.errors import InvalidRequestError
from app.services.table_storage import TableStorageClient

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["data"], responses={400: {"model": ErrorResponse}})


def _require_table(table: str | None) -> str:
    if not table:
        raise InvalidRequestError("table required")
    return table


@router.get("/data")
async def list_records(
    table: str | None = Query(None, description="Table name"),
    storage: TableStorageClient = Depends(get_table_storage_client),
) -> list[dict[str, Any]]:
    """Return every entity in the table, creating the table on first use."""
    table = _require_table(table)
    await storage.create_table(table)
    entities = await storage.list_entities(table)
    logger.info("Records listed", table=table, count=len(entities))
    return entities


@router.post("/data", response_model=OkResponse)
async def upsert_record(
    table: str | None = Query(None, description="Table name"),
    record: dict[str, Any] = Body(...),
    storage: TableStorageClient = Depends(get_table_storage_client),
):
    """Insert or replace a record by its id."""
    table = _require_table(table)
    await storage.upsert_record(table, record)
    logger.info("Record saved", table=table, record_id=record.get("id"))
    return OkResponse()


@router.delete("/data", response_model=OkResponse)
async def delete_record(
    table: str | None = Query(None, description="Table name"),
    id: str | None = Query(None, description="Record id"),
    storage: TableStorageClient = Depends(get_table_storage_client),
):
    """Delete a record by id."""
    table = _require_table(table)
    if not id:
        raise InvalidRequestError("id required")
    await storage.delete_record(table, id)
    logger.info("Record deleted", table=table, record_id=id)
    return OkResponse()
