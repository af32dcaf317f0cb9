"""
Appenate task operations. Credentials are injected into each request
(body for writes, query string for reads and deletes) rather than a header.
"""

from enum import StrEnum
from typing import Any
from urllib.parse import quote, urlencode

from app.models.domain.proxy_domain import RemoteOperation
from app.services.errors import ConfigurationError
from app.services.proxy.auth import NoAuth
from app.services.proxy.base import ActionDispatcher, operation, require_fields
from app.services.remote_caller import RemoteCaller

APPENATE_API_BASE_URL = "https://secure.appenate.com"
TASK_PATH = "/api/v1/stask"
REQUEST_TIMEOUT = 30  # seconds


class TaskAction(StrEnum):
    CREATE_TASK = "createTask"
    UPDATE_TASK = "updateTask"
    GET_TASK = "getTask"
    DELETE_TASK = "deleteTask"


class TaskDispatcher(ActionDispatcher):
    api_name = "appenate"
    base_url = APPENATE_API_BASE_URL
    Action = TaskAction

    def __init__(self, caller: RemoteCaller, integration_key: str, provider_id: str | int):
        super().__init__(NoAuth(), caller)
        try:
            self.provider_id = int(provider_id)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"APPENATE_PROVIDER_ID must be an integer, got {provider_id!r}"
            ) from None
        self.integration_key = integration_key

    def _with_credentials(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {**payload, "IntegrationKey": self.integration_key, "ProviderId": self.provider_id}

    def _lookup_path(self, payload: dict[str, Any]) -> str:
        require_fields(payload, "Id")
        query = urlencode(
            {
                "format": "json",
                "Id": payload["Id"],
                "ProviderId": self.provider_id,
                "Integrationkey": self.integration_key,
            },
            quote_via=quote,
        )
        return f"{TASK_PATH}?{query}"

    @operation(TaskAction.CREATE_TASK)
    def create_task(self, payload: dict[str, Any]) -> RemoteOperation:
        return RemoteOperation(
            "POST",
            f"{TASK_PATH}?format=json",
            json_body=self._with_credentials(payload),
            timeout=REQUEST_TIMEOUT,
        )

    @operation(TaskAction.UPDATE_TASK)
    def update_task(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "Id")
        return RemoteOperation(
            "POST",
            f"{TASK_PATH}?format=json",
            json_body=self._with_credentials(payload),
            timeout=REQUEST_TIMEOUT,
        )

    @operation(TaskAction.GET_TASK)
    def get_task(self, payload: dict[str, Any]) -> RemoteOperation:
        return RemoteOperation("GET", self._lookup_path(payload), timeout=REQUEST_TIMEOUT)

    @operation(TaskAction.DELETE_TASK)
    def delete_task(self, payload: dict[str, Any]) -> RemoteOperation:
        return RemoteOperation("DELETE", self._lookup_path(payload), timeout=REQUEST_TIMEOUT)
