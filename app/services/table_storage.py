"""
Azure Table Storage adapter on top of the azure-data-tables async SDK.

Records are stored as {PartitionKey: "main", RowKey: <id>, data: <json string>};
readers parse ``data`` themselves. SDK failures are mapped onto the proxy error
taxonomy so routes and the reminder engine never see azure-core exceptions.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ServiceRequestError,
    ServiceRequestTimeoutError,
    ServiceResponseError,
    ServiceResponseTimeoutError,
)
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableClient, TableServiceClient

from app.infrastructure.observability.logging import get_logger
from app.services.errors import (
    ConfigurationError,
    InvalidRequestError,
    TransportError,
    TransportTimeoutError,
    UpstreamRequestError,
)

logger = get_logger(__name__)

DEFAULT_PARTITION = "main"


def _first_line(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error)
    return message.strip().splitlines()[0] if message.strip() else type(error).__name__


@contextmanager
def _storage_errors(operation: str, table: str) -> Iterator[None]:
    """Translate azure-core exceptions raised inside the block."""
    details = {"api": "table_storage", "action": operation, "table": table}
    try:
        yield
    except (ServiceRequestTimeoutError, ServiceResponseTimeoutError) as e:
        logger.warning("Table storage request timed out", operation=operation, table=table)
        raise TransportTimeoutError(
            f"Table storage {operation} timed out", details=details
        ) from e
    except (ServiceRequestError, ServiceResponseError) as e:
        logger.warning(
            "Table storage transport error",
            operation=operation,
            table=table,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TransportError(
            f"Table storage {operation} failed: {type(e).__name__}: {_first_line(e)}",
            details=details,
        ) from e
    except HttpResponseError as e:
        message = _first_line(e)
        logger.error(
            f"Table storage {operation} failed",
            table=table,
            status_code=e.status_code,
            error_message=message,
        )
        raise UpstreamRequestError(
            message, status_code=e.status_code or 502, details=details
        ) from e


class TableStorageClient:
    """List, upsert, delete and create-table against one storage account."""

    def __init__(
        self,
        account_name: str,
        account_key: str,
        service: TableServiceClient | None = None,
    ):
        if not account_name or not account_key:
            raise ConfigurationError("Missing env vars: STORAGE_ACCOUNT, STORAGE_KEY")
        try:
            base64.b64decode(account_key, validate=True)
        except (binascii.Error, ValueError):
            raise ConfigurationError("STORAGE_KEY is not valid base64") from None

        self.account_name = account_name
        self.endpoint = f"https://{account_name}.table.core.windows.net"
        self._service = service or TableServiceClient(
            endpoint=self.endpoint,
            credential=AzureNamedKeyCredential(account_name, account_key),
        )
        self._tables: dict[str, TableClient] = {}
        self._known_tables: set[str] = set()

    def _table(self, table: str) -> TableClient:
        client = self._tables.get(table)
        if client is None:
            client = self._tables.setdefault(table, self._service.get_table_client(table))
        return client

    async def create_table(self, table: str) -> None:
        """Create ``table`` if it does not exist yet."""
        if table in self._known_tables:
            return
        with _storage_errors("create_table", table):
            try:
                await self._table(table).create_table()
                logger.info("Table created", table=table)
            except ResourceExistsError:
                pass
        self._known_tables.add(table)

    async def list_entities(self, table: str) -> list[dict[str, Any]]:
        """
        Return every entity in ``table``; the SDK follows continuation tokens.

        Raises:
            UpstreamRequestError: the service rejected a page request
            TransportError: the service could not be reached in time
        """
        entities: list[dict[str, Any]] = []
        with _storage_errors("list_entities", table):
            async for entity in self._table(table).list_entities():
                entities.append(dict(entity))

        logger.debug("Table entities listed", table=table, entity_count=len(entities))
        return entities

    async def upsert_record(
        self, table: str, record: dict[str, Any], partition_key: str = DEFAULT_PARTITION
    ) -> None:
        """Insert or replace ``record`` keyed by its ``id``; the record is stored as JSON."""
        record_id = record.get("id")
        if record_id in (None, ""):
            raise InvalidRequestError("Record must have an id")

        await self.create_table(table)
        entity = {
            "PartitionKey": partition_key,
            "RowKey": str(record_id),
            "data": json.dumps(record),
        }
        with _storage_errors("upsert_record", table):
            await self._table(table).upsert_entity(entity, mode=UpdateMode.REPLACE)

    async def delete_record(
        self, table: str, record_id: str, partition_key: str = DEFAULT_PARTITION
    ) -> None:
        if not record_id:
            raise InvalidRequestError("id required")
        with _storage_errors("delete_record", table):
            await self._table(table).delete_entity(partition_key, record_id)

    async def close(self) -> None:
        await self._service.close()


_table_clients: dict[tuple[str, str], TableStorageClient] = {}


def get_table_storage(account_name: str, account_key: str) -> TableStorageClient:
    """Process-wide client per storage account, created on first use."""
    key = (account_name, account_key)
    client = _table_clients.get(key)
    if client is None:
        client = _table_clients.setdefault(key, TableStorageClient(account_name, account_key))
    return client


async def close_table_storage() -> None:
    """Close every cached storage client."""
    clients = list(_table_clients.values())
    _table_clients.clear()
    for client in clients:
        await client.close()
