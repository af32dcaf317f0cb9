"""
SharePoint document library operations over Microsoft Graph.
Site, drive, folder and file actions for job document folders.
"""

import base64
import binascii
import json
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from app.models.domain.proxy_domain import CallResult, RemoteOperation
from app.services.errors import InvalidRequestError
from app.services.proxy.base import (
    ActionDispatcher,
    composite,
    encode_path,
    encode_segment,
    operation,
    require_fields,
)
from app.services.proxy.auth import BearerTokenAuth
from app.services.remote_caller import RemoteCaller

GRAPH_API_BASE_URL = "https://graph.microsoft.com"

READ_TIMEOUT = 30  # seconds
UPLOAD_TIMEOUT = 60  # binary uploads can be large
SHARE_LINK_DAYS = 90
LIST_FOLDER_LIMIT = 200
SEARCH_LIMIT = 50


class DocumentAction(StrEnum):
    GET_SITE_ID = "getSiteId"
    GET_DRIVE_ID = "getDriveId"
    CREATE_FOLDER = "createFolder"
    LIST_FOLDER = "listFolder"
    UPLOAD_FILE = "uploadFile"
    UPDATE_METADATA = "updateMetadata"
    CREATE_SHARE_LINK = "createShareLink"
    DELETE_ITEM = "deleteItem"
    GET_DOWNLOAD_URL = "getDownloadUrl"
    SEARCH_FILES = "searchFiles"
    TEST_CONNECTION = "testConnection"


class DocumentDispatcher(ActionDispatcher):
    """Document actions against one SharePoint site, authenticated by bearer token."""

    api_name = "sharepoint"
    base_url = GRAPH_API_BASE_URL
    Action = DocumentAction

    def __init__(
        self,
        auth: BearerTokenAuth,
        caller: RemoteCaller,
        site_host: str,
        site_path: str,
        site_url: str = "",
    ):
        super().__init__(auth, caller)
        self.site_host = site_host
        self.site_path = site_path
        self.site_url = site_url

    @property
    def site_lookup_path(self) -> str:
        relative = encode_path(self.site_path)
        if not relative:
            return f"/v1.0/sites/{encode_segment(self.site_host)}"
        return f"/v1.0/sites/{encode_segment(self.site_host)}:/{relative}"

    def _drive_path(self, payload: dict[str, Any]) -> str:
        require_fields(payload, "siteId", "driveId")
        return (
            f"/v1.0/sites/{encode_segment(payload['siteId'])}"
            f"/drives/{encode_segment(payload['driveId'])}"
        )

    def _item_path(self, payload: dict[str, Any]) -> str:
        require_fields(payload, "itemId")
        return f"{self._drive_path(payload)}/items/{encode_segment(payload['itemId'])}"

    def _root_path(self, payload: dict[str, Any], relative: str) -> str:
        """Address a drive item by path; an empty path is the drive root."""
        encoded = encode_path(relative)
        if not encoded:
            return f"{self._drive_path(payload)}/root"
        return f"{self._drive_path(payload)}/root:/{encoded}:"

    @operation(DocumentAction.GET_SITE_ID)
    def get_site_id(self, payload: dict[str, Any]) -> RemoteOperation:
        return RemoteOperation("GET", self.site_lookup_path, timeout=READ_TIMEOUT)

    @operation(DocumentAction.GET_DRIVE_ID)
    def get_drive_id(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "siteId")
        path = f"/v1.0/sites/{encode_segment(payload['siteId'])}/drives"
        return RemoteOperation("GET", path, timeout=READ_TIMEOUT)

    @operation(DocumentAction.CREATE_FOLDER)
    def create_folder(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "folderName")
        parent = self._root_path(payload, payload.get("parentPath") or "")
        return RemoteOperation(
            "POST",
            f"{parent}/children",
            json_body={
                "name": payload["folderName"],
                "folder": {},
                "@microsoft.graph.conflictBehavior": "rename",
            },
            timeout=READ_TIMEOUT,
        )

    @operation(DocumentAction.LIST_FOLDER)
    def list_folder(self, payload: dict[str, Any]) -> RemoteOperation:
        folder = self._root_path(payload, payload.get("folderPath") or "")
        return RemoteOperation(
            "GET",
            f"{folder}/children?$orderby=name&$top={LIST_FOLDER_LIMIT}",
            timeout=READ_TIMEOUT,
        )

    @operation(DocumentAction.UPLOAD_FILE)
    def upload_file(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "filePath", "fileContent")
        if not encode_path(payload["filePath"]):
            raise InvalidRequestError("filePath must name a file")

        try:
            content = base64.b64decode(payload["fileContent"], validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise InvalidRequestError("fileContent is not valid base64") from None

        return RemoteOperation(
            "PUT",
            f"{self._root_path(payload, payload['filePath'])}/content",
            content=content,
            content_type=payload.get("contentType") or "application/octet-stream",
            timeout=UPLOAD_TIMEOUT,
        )

    @operation(DocumentAction.UPDATE_METADATA)
    def update_metadata(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "metadata")
        return RemoteOperation(
            "PATCH",
            f"{self._item_path(payload)}/listItem/fields",
            json_body=payload["metadata"],
            timeout=READ_TIMEOUT,
        )

    @operation(DocumentAction.CREATE_SHARE_LINK)
    def create_share_link(self, payload: dict[str, Any]) -> RemoteOperation:
        expiry = datetime.now(UTC) + timedelta(days=SHARE_LINK_DAYS)
        return RemoteOperation(
            "POST",
            f"{self._item_path(payload)}/createLink",
            json_body={
                "type": "view",
                "scope": "anonymous",
                "expirationDateTime": expiry.isoformat().replace("+00:00", "Z"),
            },
            timeout=READ_TIMEOUT,
        )

    @operation(DocumentAction.DELETE_ITEM)
    def delete_item(self, payload: dict[str, Any]) -> RemoteOperation:
        return RemoteOperation("DELETE", self._item_path(payload), timeout=READ_TIMEOUT)

    @operation(DocumentAction.GET_DOWNLOAD_URL)
    def get_download_url(self, payload: dict[str, Any]) -> RemoteOperation:
        return RemoteOperation(
            "GET",
            f"{self._item_path(payload)}?select=id,name,@microsoft.graph.downloadUrl",
            timeout=READ_TIMEOUT,
        )

    @operation(DocumentAction.SEARCH_FILES)
    def search_files(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "query")
        # OData string literal: single quotes are doubled
        term = encode_segment(str(payload["query"]).replace("'", "''"))
        return RemoteOperation(
            "GET",
            f"{self._drive_path(payload)}/root/search(q='{term}')?$top={SEARCH_LIMIT}",
            timeout=READ_TIMEOUT,
        )

    @composite(DocumentAction.TEST_CONNECTION)
    async def test_connection(self, payload: dict[str, Any]) -> CallResult:
        """Diagnostic: resolve the configured site and report what came back."""
        site = await self.execute(
            RemoteOperation("GET", self.site_lookup_path, timeout=READ_TIMEOUT),
            action=DocumentAction.TEST_CONNECTION.value,
            raise_for_status=False,
        )
        site_response = site.json()
        report = {
            "tokenOk": True,
            "siteUrl": self.site_url,
            "siteIdPath": self.site_lookup_path,
            "siteStatus": site.status_code,
            "siteResponse": site_response if site_response is not None else site.text,
        }
        return CallResult(
            status_code=200,
            body=json.dumps(report).encode("utf-8"),
            headers={"content-type": "application/json"},
        )
